"""Request bodies. Field names follow the camelCase JSON of the explorer API."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from bridge_explorer.transfers.engine import TransferFilter


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TransferFilterBody(CamelModel):
    chain_id: Optional[int] = Field(default=None, alias="chainId")
    address: Optional[str] = None
    token: Optional[str] = None
    state: Optional[str] = None
    start_time: Optional[int] = Field(default=None, alias="startTime")
    end_time: Optional[int] = Field(default=None, alias="endTime")

    def to_filter(self) -> TransferFilter:
        return TransferFilter(
            chain_id=self.chain_id,
            address=self.address,
            token=self.token,
            state=self.state,
            start_time=self.start_time,
            end_time=self.end_time,
        )


class TransferListRequest(CamelModel):
    page_no: int = Field(alias="pageNo")
    page_size: int = Field(alias="pageSize")
    filter: TransferFilterBody = Field(default_factory=TransferFilterBody)


class TokenTransactionsRequest(CamelModel):
    chain_id: int = Field(alias="chainId")
    token: str
    page_no: int = Field(alias="pageNo")
    page_size: int = Field(alias="pageSize")


class AddressTransactionsRequest(CamelModel):
    chain_id: int = Field(alias="chainId")
    address: str
    page_no: int = Field(alias="pageNo")
    page_size: int = Field(alias="pageSize")
