from __future__ import annotations

from app.economy.tokens.constants import (
    CUSTOM_PACKAGE_CODE,
    CUSTOM_PACKAGE_MAX_TOKENS,
    CUSTOM_PACKAGE_MIN_TOKENS,
    CUSTOM_PACKAGE_PRICE_PER_TOKEN,
    TOKEN_PRICE_CURRENCY,
)
from app.economy.tokens.errors import TokenPackageNotFoundError, TokenPackageQuantityError
from app.economy.tokens.types import TokenPackage

TOKEN_PACKAGES: dict[str, TokenPackage] = {
    "PACK_10": TokenPackage(
        code="PACK_10",
        title="Pack Découverte",
        tokens=10,
        price=100,
        currency=TOKEN_PRICE_CURRENCY,
    ),
    "PACK_25": TokenPackage(
        code="PACK_25",
        title="Pack Standard",
        tokens=25,
        price=200,
        currency=TOKEN_PRICE_CURRENCY,
        popular=True,
    ),
    "PACK_50": TokenPackage(
        code="PACK_50",
        title="Pack Premium",
        tokens=50,
        price=350,
        currency=TOKEN_PRICE_CURRENCY,
    ),
    "PACK_100": TokenPackage(
        code="PACK_100",
        title="Pack VIP",
        tokens=100,
        price=600,
        currency=TOKEN_PRICE_CURRENCY,
    ),
}


def get_package(package_code: str) -> TokenPackage | None:
    return TOKEN_PACKAGES.get(package_code)


def package_savings(package: TokenPackage) -> int:
    return package.tokens * CUSTOM_PACKAGE_PRICE_PER_TOKEN - package.price


def resolve_package(package_code: str, *, quantity: int | None = None) -> TokenPackage:
    if package_code == CUSTOM_PACKAGE_CODE:
        if quantity is None or not CUSTOM_PACKAGE_MIN_TOKENS <= quantity <= CUSTOM_PACKAGE_MAX_TOKENS:
            raise TokenPackageQuantityError
        return TokenPackage(
            code=CUSTOM_PACKAGE_CODE,
            title="Pack Personnalisé",
            tokens=quantity,
            price=quantity * CUSTOM_PACKAGE_PRICE_PER_TOKEN,
            currency=TOKEN_PRICE_CURRENCY,
        )

    package = get_package(package_code)
    if package is None:
        raise TokenPackageNotFoundError
    return package
