from storefront.core.config import settings
from storefront.core.exceptions import StorefrontError
