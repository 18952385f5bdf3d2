"""ORM persistence models.  Importing this package registers every table."""

from charges_kernel.models.batch import BatchProductModel, PackagingBatchModel
from charges_kernel.models.charge import ChargeHistoryModel, ChargeModel
from charges_kernel.models.shipping_rate import ShippingRateModel

__all__ = [
    "BatchProductModel",
    "ChargeHistoryModel",
    "ChargeModel",
    "PackagingBatchModel",
    "ShippingRateModel",
]
