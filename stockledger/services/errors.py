"""
Erreurs du moteur de journal.

ValidationError  : lot refusé avant toute écriture.
PersistenceError : le store durable a échoué ; journalisée, jamais propagée
                   à l'appelant de commit_batch / delete_batch.
"""


class LedgerError(Exception):
    pass


class ValidationError(LedgerError):
    def __init__(self, message: str, *, line_index: int | None = None):
        self.line_index = line_index
        if line_index is not None:
            message = f"line {line_index}: {message}"
        super().__init__(message)


class PersistenceError(LedgerError):
    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        detail = f"{operation} failed"
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(detail)
