from pydantic import BaseModel


class QuotaRead(BaseModel):
    """One ledger row. A limit of -1 means unbounded."""

    resource: str
    quota_limit: int
    usage: int
    is_unbounded: bool

    model_config = {"from_attributes": True}


class QuotaSnapshot(BaseModel):
    tenant_id: str
    quotas: list[QuotaRead]
