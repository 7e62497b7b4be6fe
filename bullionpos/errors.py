"""
bullionpos/errors.py

Typed errors raised by the pricing, deal, compliance and cost-basis services.
Each error carries a machine-readable `code` so the HTTP layer can report it
without parsing messages.

    BullionPOSError
    +-- InvalidQuantityError      non-positive or non-numeric qty/price
    +-- InvalidProductError       unknown metal/form/coin type/purity
    +-- EmptyDealError            no priced lines or trade legs
    +-- UnavailablePriceError     spot price zero or unset
    +-- TransactionNotFoundError  edit/delete of an unknown id

DataIntegrityWarning is not raised; the cost-basis engine collects it on its
report when a sale consumes more metal than the lot queue holds.
"""


class BullionPOSError(Exception):
    code = "BULLION_POS_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidQuantityError(BullionPOSError):
    code = "INVALID_QUANTITY"


class InvalidProductError(BullionPOSError):
    code = "INVALID_PRODUCT"


class EmptyDealError(BullionPOSError):
    code = "EMPTY_DEAL"


class UnavailablePriceError(BullionPOSError):
    code = "UNAVAILABLE_PRICE"


class TransactionNotFoundError(BullionPOSError):
    code = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        super().__init__(f"Transaction {transaction_id} not found")
        self.transaction_id = transaction_id


class DataIntegrityWarning(UserWarning):
    """
    Oversold inventory: a sell-side movement asked for more metal than the
    product's lot queue held. The unmatched quantity is costed at zero.
    """
    code = "OVERSOLD_INVENTORY"

    def __init__(self, transaction_id, product_key, unmatched_qty):
        self.transaction_id = transaction_id
        self.product_key = product_key
        self.unmatched_qty = unmatched_qty
        metal, form, coin_type = product_key
        label = f"{metal} {form}" + (f" ({coin_type})" if coin_type else "")
        super().__init__(
            f"Transaction {transaction_id} sold {unmatched_qty} oz of {label} "
            f"beyond available inventory"
        )
