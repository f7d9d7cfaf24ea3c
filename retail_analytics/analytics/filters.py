"""
Query Filters

Optional date range, brand and store predicates shared by every
aggregation view. Present filters are ANDed together.
"""

from datetime import date
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from sqlalchemy import select

from retail_analytics.database.models import Product, SaleFact
from retail_analytics.exceptions import QueryValidationError


def brand_products(brand_id: int):
    """Ids of a brand's products, never correlated to an enclosing products join"""
    return select(Product.id).where(Product.brand_id == brand_id).correlate(None)


class SalesFilter(BaseModel):
    """
    Filter set for aggregation queries.

    ``start_date`` and ``end_date`` bound a closed range on the sale date.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    start_date: Optional[date] = Field(default=None, alias="startDate")
    end_date: Optional[date] = Field(default=None, alias="endDate")
    brand_id: Optional[int] = Field(default=None, alias="brandId", ge=1)
    store_id: Optional[int] = Field(default=None, alias="storeId", ge=1)

    @model_validator(mode="after")
    def check_range(self) -> "SalesFilter":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError(
                f"endDate {self.end_date.isoformat()} is before startDate {self.start_date.isoformat()}"
            )
        return self

    @classmethod
    def from_params(cls, **params: Any) -> "SalesFilter":
        """
        Build a filter from raw query parameters.

        Empty values are treated as absent.

        Raises:
            QueryValidationError: If a value is malformed
        """
        cleaned = {k: v for k, v in params.items() if v is not None and v != ""}
        try:
            return cls.model_validate(cleaned)
        except ValidationError as e:
            reasons = [
                f"{'.'.join(str(part) for part in err['loc']) or 'filter'}: {err['msg']}"
                for err in e.errors()
            ]
            raise QueryValidationError("Invalid query filter", detail=reasons) from e

    def conditions(self, fact=SaleFact) -> List[Any]:
        """SQLAlchemy predicates over the sales fact table"""
        clauses = []
        if self.start_date:
            clauses.append(fact.sale_date >= self.start_date.isoformat())
        if self.end_date:
            clauses.append(fact.sale_date <= self.end_date.isoformat())
        if self.brand_id is not None:
            clauses.append(
                fact.product_id.in_(brand_products(self.brand_id))
            )
        if self.store_id is not None:
            clauses.append(fact.store_id == self.store_id)
        return clauses


NO_FILTER = SalesFilter()
