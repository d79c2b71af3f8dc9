DRAFT = "draft"
PUBLISHED = "published"
OUT_OF_STOCK = "outOfStock"

PRODUCT_STATUSES = [DRAFT, PUBLISHED, OUT_OF_STOCK]

# statuses shown in the public catalog
VISIBLE_STATUSES = [PUBLISHED, OUT_OF_STOCK]
