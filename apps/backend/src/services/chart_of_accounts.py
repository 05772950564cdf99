"""Chart of accounts service (French Plan Comptable Général)."""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.logger import get_logger
from src.models import AccountType, ChartAccount

logger = get_logger(__name__)

# (account_number, name, account_type, parent_account_number)
PCG_DEFAULT_ACCOUNTS: list[tuple[str, str, AccountType, str | None]] = [
    # Classe 1 - Capitaux
    ("10", "Capital et réserves", AccountType.EQUITY, None),
    ("101000", "Capital social", AccountType.EQUITY, "10"),
    ("108000", "Compte de l'exploitant", AccountType.EQUITY, "10"),
    ("12", "Résultat de l'exercice", AccountType.EQUITY, None),
    ("120000", "Résultat de l'exercice (bénéfice)", AccountType.EQUITY, "12"),
    ("129000", "Résultat de l'exercice (perte)", AccountType.EQUITY, "12"),
    # Classe 2 - Immobilisations
    ("21", "Immobilisations corporelles", AccountType.ASSET, None),
    ("211000", "Terrains", AccountType.ASSET, "21"),
    ("213000", "Constructions", AccountType.ASSET, "21"),
    ("215000", "Matériel et outillage", AccountType.ASSET, "21"),
    ("218000", "Autres immobilisations corporelles", AccountType.ASSET, "21"),
    # Classe 3 - Stocks
    ("31", "Matières premières", AccountType.ASSET, None),
    ("310000", "Matières premières", AccountType.ASSET, "31"),
    ("37", "Stocks de marchandises", AccountType.ASSET, None),
    ("370000", "Stocks de marchandises", AccountType.ASSET, "37"),
    # Classe 4 - Tiers
    ("40", "Fournisseurs et comptes rattachés", AccountType.LIABILITY, None),
    ("401000", "Fournisseurs", AccountType.LIABILITY, "40"),
    ("41", "Clients et comptes rattachés", AccountType.ASSET, None),
    ("411000", "Clients", AccountType.ASSET, "41"),
    ("44", "État et autres collectivités publiques", AccountType.LIABILITY, None),
    ("44566", "TVA déductible sur biens et services", AccountType.ASSET, "44"),
    ("445660", "TVA déductible sur achats", AccountType.ASSET, "44566"),
    ("44571", "TVA collectée", AccountType.LIABILITY, "44"),
    ("445710", "TVA collectée sur ventes", AccountType.LIABILITY, "44571"),
    ("44551", "TVA à décaisser", AccountType.LIABILITY, "44"),
    ("44567", "Crédit de TVA à reporter", AccountType.ASSET, "44"),
    # Classe 5 - Financiers
    ("51", "Banques, établissements financiers", AccountType.ASSET, None),
    ("512000", "Banque", AccountType.ASSET, "51"),
    ("53", "Caisse", AccountType.ASSET, None),
    ("531000", "Caisse", AccountType.ASSET, "53"),
    # Classe 6 - Charges
    ("60", "Achats", AccountType.EXPENSE, None),
    ("601000", "Achats de matières premières", AccountType.EXPENSE, "60"),
    ("602000", "Achats stockés - Autres approvisionnements", AccountType.EXPENSE, "60"),
    ("604000", "Achats d'études et prestations", AccountType.EXPENSE, "60"),
    ("606000", "Achats non stockés de matières et fournitures", AccountType.EXPENSE, "60"),
    ("607000", "Achats de marchandises", AccountType.EXPENSE, "60"),
    ("61", "Services extérieurs", AccountType.EXPENSE, None),
    ("613000", "Locations", AccountType.EXPENSE, "61"),
    ("615000", "Entretien et réparations", AccountType.EXPENSE, "61"),
    ("616000", "Primes d'assurance", AccountType.EXPENSE, "61"),
    ("618000", "Divers", AccountType.EXPENSE, "61"),
    ("62", "Autres services extérieurs", AccountType.EXPENSE, None),
    ("622000", "Rémunérations d'intermédiaires et honoraires", AccountType.EXPENSE, "62"),
    ("623000", "Publicité, publications, relations publiques", AccountType.EXPENSE, "62"),
    ("625000", "Déplacements, missions et réceptions", AccountType.EXPENSE, "62"),
    ("626000", "Frais postaux et de télécommunications", AccountType.EXPENSE, "62"),
    ("627000", "Services bancaires et assimilés", AccountType.EXPENSE, "62"),
    ("63", "Impôts, taxes et versements assimilés", AccountType.EXPENSE, None),
    ("635000", "Autres impôts, taxes et versements assimilés", AccountType.EXPENSE, "63"),
    ("64", "Charges de personnel", AccountType.EXPENSE, None),
    ("641000", "Rémunérations du personnel", AccountType.EXPENSE, "64"),
    ("645000", "Charges de sécurité sociale", AccountType.EXPENSE, "64"),
    ("67", "Charges exceptionnelles", AccountType.EXPENSE, None),
    ("671000", "Charges exceptionnelles sur opérations de gestion", AccountType.EXPENSE, "67"),
    # Classe 7 - Produits
    ("70", "Ventes de produits et services", AccountType.INCOME, None),
    ("701000", "Ventes de produits finis", AccountType.INCOME, "70"),
    ("706000", "Prestations de services", AccountType.INCOME, "70"),
    ("707000", "Ventes de marchandises", AccountType.INCOME, "70"),
    ("708000", "Produits des activités annexes", AccountType.INCOME, "70"),
    ("74", "Subventions d'exploitation", AccountType.INCOME, None),
    ("740000", "Subventions d'exploitation", AccountType.INCOME, "74"),
    ("77", "Produits exceptionnels", AccountType.INCOME, None),
    ("771000", "Produits exceptionnels sur opérations de gestion", AccountType.INCOME, "77"),
]


def account_class_of(account_number: str) -> int:
    """PCG class is the leading digit of the account number."""
    return int(account_number[0])


async def count_accounts(db: AsyncSession, organization_id: UUID) -> int:
    result = await db.execute(
        select(func.count()).select_from(ChartAccount).where(ChartAccount.organization_id == organization_id)
    )
    return result.scalar() or 0


async def init_chart_of_accounts(db: AsyncSession, organization_id: UUID) -> int:
    """
    Seed the default PCG chart for an organization.

    Idempotent: an organization that already has any account is left alone.

    Returns:
        Number of accounts inserted (0 when the chart already existed)
    """
    if await count_accounts(db, organization_id) > 0:
        logger.info("Chart of accounts already initialized", organization_id=str(organization_id))
        return 0

    for number, name, account_type, parent in PCG_DEFAULT_ACCOUNTS:
        db.add(
            ChartAccount(
                organization_id=organization_id,
                account_number=number,
                name=name,
                account_class=account_class_of(number),
                account_type=account_type,
                parent_account_number=parent,
                is_system=True,
                is_active=True,
            )
        )
    await db.flush()

    logger.info(
        "Chart of accounts initialized",
        organization_id=str(organization_id),
        account_count=len(PCG_DEFAULT_ACCOUNTS),
    )
    return len(PCG_DEFAULT_ACCOUNTS)


async def get_accounts_by_numbers(
    db: AsyncSession,
    organization_id: UUID,
    numbers: Iterable[str],
) -> dict[str, UUID]:
    """Map account numbers to account ids. Numbers missing from the chart are absent from the result."""
    wanted = sorted(set(numbers))
    if not wanted:
        return {}
    result = await db.execute(
        select(ChartAccount.account_number, ChartAccount.id).where(
            ChartAccount.organization_id == organization_id,
            ChartAccount.account_number.in_(wanted),
        )
    )
    return {row.account_number: row.id for row in result.all()}


async def list_accounts(
    db: AsyncSession,
    organization_id: UUID,
    include_inactive: bool = False,
) -> list[ChartAccount]:
    query = select(ChartAccount).where(ChartAccount.organization_id == organization_id)
    if not include_inactive:
        query = query.where(ChartAccount.is_active == True)  # noqa: E712
    result = await db.execute(query.order_by(ChartAccount.account_number))
    return list(result.scalars().all())
