"""Stampman exceptions."""


class BaseError(Exception):
    """
    Structured exception with a machine-readable code.

    Subclasses declare ``_default_messages`` so callers only pass the code
    and whatever context identifies the entity involved.
    """

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, /, message: str | None = None, **data):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "data": self.data}


class StampmanError(BaseError):
    """
    Structured exception for loyalty engine operations.

    Every engine operation is all-or-nothing: raising one of these inside a
    unit of work rolls back the balance change and its audit row together.

    Usage:
        try:
            LoyaltyEngine.redeem_points(account_id, 50, "Desconto")
        except StampmanError as e:
            if e.code == "INSUFFICIENT_POINTS":
                show_balance(e.data["available"])
    """

    _default_messages = {
        "INVALID_AMOUNT": "Amount must be a positive integer",
        "INSUFFICIENT_POINTS": "Insufficient points",
        "INSUFFICIENT_STAMPS": "Insufficient stamps",
        "CARD_EXPIRED": "Stamp card has expired",
        "CARD_COMPLETED": "Stamp card is already completed",
        "REWARD_UNAVAILABLE": "Reward is not available",
        "CODE_EXPIRED_OR_CONSUMED": "Transaction code expired or already consumed",
        "CODE_NOT_CANCELLABLE": "Transaction code can no longer be cancelled",
        "CODE_GENERATION_FAILED": "Could not generate a unique code",
        "ACCOUNT_NOT_FOUND": "Loyalty account not found",
        "CARD_NOT_FOUND": "Stamp card not found",
        "REWARD_NOT_FOUND": "Reward not found",
        "PROGRESS_NOT_FOUND": "No open reward progress found",
        "PROGRESS_ALREADY_OPEN": "Reward progress already open for this reward",
        "CODE_NOT_FOUND": "Transaction code not found",
        "REDEMPTION_NOT_ACTIVE": "Redemption is no longer active",
        "CONCURRENT_MODIFICATION": "Record is locked by another operation, retry",
    }
