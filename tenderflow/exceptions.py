"""Domain error taxonomy.

Every error carries a user-facing message (Norwegian, as shown in the UI).
Services raise these; the operation facade turns them into
``OperationResult(success=False, error=...)``.
"""


class TenderFlowError(Exception):
    """Base class for all domain errors."""

    default_message = "Noe gikk galt. Prøv igjen."

    def __init__(self, message: str | None = None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)


class ValidationError(TenderFlowError):
    """Missing or malformed required input."""

    default_message = "Ugyldige data."


class NotFoundError(TenderFlowError):
    """Referenced tender, bid, question, document or contract is absent."""

    default_message = "Fant ikke det du leter etter."


class PolicyViolationError(TenderFlowError):
    """A business rule forbids the operation right now (standstill, draft tender)."""

    default_message = "Operasjonen er ikke tillatt."


class ConflictError(TenderFlowError):
    """The document changed underneath a conditional write."""

    default_message = "Dataene ble endret av noen andre. Last inn på nytt og prøv igjen."


class DependencyError(TenderFlowError):
    """Persistence or notification collaborator failed."""

    default_message = "En ekstern tjeneste svarte ikke. Prøv igjen."
