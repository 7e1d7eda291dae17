import enum


class ActorRole(str, enum.Enum):
    admin = "ADMIN"
    manager = "MANAGER"
    staff = "STAFF"


class TransactionType(str, enum.Enum):
    restock = "RESTOCK"        # fournisseur -> fridge central
    check_out = "CHECK_OUT"    # fridge -> branche
    check_in = "CHECK_IN"      # branche -> fridge (retours)
    waste = "WASTE"            # branche -> poubelle (perte)
    adjustment = "ADJUSTMENT"  # correction manuelle (inventaire), quantité signée


class ReconciliationStatus(str, enum.Enum):
    complete = "complete"
    missing_return = "missing_return"
    only_return = "only_return"


# Types appariés par (date, branche) dans la réconciliation
MATCHED_TYPES = frozenset({TransactionType.check_out, TransactionType.check_in})

# Pseudo-branche du stock central (utilisée par RESTOCK)
CENTRAL_STORE_ID = "FRIDGE"
CENTRAL_STORE_NAME = "Main Fridge"
