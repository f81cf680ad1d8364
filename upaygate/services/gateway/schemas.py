"""Wire schemas exchanged with the UPay processor."""

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr

from upaygate.common.signing import SIGN_FIELD

# Strict members keep JSON values in their received type, so they render
# the same way the processor rendered them when it signed.
WireScalar = Union[StrictStr, StrictInt, StrictFloat, StrictBool, None]


class OrderCreationRequest(BaseModel):
    """Signed order payload posted to `<apiBase>/api/v1/order`."""

    model_config = ConfigDict(populate_by_name=True)

    oid: str
    uid: str
    amount: float
    memo: str
    expired_at: int = Field(alias="expiredAt")
    timestamp: int
    nonce: str
    mch_id: str = Field(alias="mchId")
    notify_url: str = Field(alias="notifyUrl")
    redirect_url: str = Field(alias="redirectUrl")
    sign: str | None = None

    def signable_fields(self) -> dict[str, Any]:
        """Wire-named fields covered by the signature (everything but `sign`)."""

        return self.model_dump(by_alias=True, exclude={SIGN_FIELD})

    def wire_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class UpstreamOrderData(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str


class UpstreamOrderResponse(BaseModel):
    """Processor reply to order creation; `code == 1` means accepted."""

    model_config = ConfigDict(extra="allow")

    code: int
    message: str = ""
    data: UpstreamOrderData | None = None


class NotificationMessage(BaseModel):
    """Payment status callback sent by the processor to `/notify`.

    Unknown fields are kept: the processor signs every field it sends.
    """

    model_config = ConfigDict(extra="allow")

    oid: WireScalar = None
    id: WireScalar = None
    uid: WireScalar = None
    timestamp: WireScalar = None
    nonce: WireScalar = None
    status: WireScalar = None
    status_code: WireScalar = Field(default=None, alias="statusCode")
    sign: WireScalar = None

    def received_fields(self) -> dict[str, Any]:
        """Exactly the fields present in the inbound body, under their wire names."""

        model_fields = type(self).model_fields
        present = {
            model_fields[name].alias or name for name in self.model_fields_set if name in model_fields
        }
        present.update(self.model_extra or {})
        return {key: value for key, value in self.model_dump(by_alias=True).items() if key in present}
