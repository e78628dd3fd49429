from typing import Optional

from fastapi import APIRouter, Depends
from research_gateway.schemas import NeuralQueryRequest, ResponseEnvelope
from research_gateway.deps import get_gateway
from research_gateway.gateway import QueryGateway

router = APIRouter(tags=["query"])


@router.post("/api/neural-query", response_model=ResponseEnvelope)
async def neural_query(
    req: Optional[NeuralQueryRequest] = None, gateway: QueryGateway = Depends(get_gateway)
) -> ResponseEnvelope:
    # no body at all is the same as {}: the gateway substitutes the default topic
    return await gateway.query(req.query if req is not None else None)
