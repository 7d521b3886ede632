# Services package.
#
# Each module exposes async functions that hold the business logic and
# database access for one aggregate:
#
#   category_service  - Category CRUD and the post_count recount
#   consistency       - recount hooks called after post writes
#   post_service      - Post CRUD, listing/search, views and likes
#   comment_service   - append-only comments on a Post
#   user_service      - provisioning and lookup for User
#
# All service functions take an AsyncSession first so the router layer
# controls the transaction boundary through the ``get_db`` dependency.
# Failures are raised as ``quill.errors.BlogError`` subclasses.
