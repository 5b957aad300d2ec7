from pydantic import BaseModel


class FulfillmentResponse(BaseModel):
    fulfillmentText: str
