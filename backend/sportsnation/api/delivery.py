"""
Delivery API
Shipping charge and delivery estimate shown at checkout
"""
from fastapi import APIRouter
from pydantic import BaseModel, Field

from sportsnation.services.delivery_service import DeliveryService, format_currency

router = APIRouter(prefix="/api/v1/delivery", tags=["Delivery"])

delivery_service = DeliveryService()


class DeliveryCalculationRequest(BaseModel):
    order_total: float = Field(..., ge=0)


@router.post("/calculate")
async def calculate_delivery(request: DeliveryCalculationRequest):
    quote = delivery_service.calculate(request.order_total)

    data = quote.model_dump(mode="json")
    data["formatted"] = {
        "orderTotal": format_currency(quote.order_total),
        "shippingCost": format_currency(quote.shipping_cost),
        "totalWithShipping": format_currency(quote.total_with_shipping),
        "partialPaymentAmount": format_currency(quote.partial_payment_amount),
    }
    return data
