from fastapi import APIRouter

from stride_billing.api.v1.endpoints import (
    services,
    charges,
    promo_codes,
    coverage,
)

api_router = APIRouter(prefix="/api/v1")

# Service Catalog
api_router.include_router(services.router, prefix="/services", tags=["Service Catalog"])

# Charges & Billing Previews
api_router.include_router(charges.router, prefix="/charges", tags=["Charges"])

# Promo Codes
api_router.include_router(promo_codes.router, prefix="/promo-codes", tags=["Promo Codes"])

# Valuation Coverage
api_router.include_router(coverage.router, prefix="/coverage", tags=["Coverage"])
