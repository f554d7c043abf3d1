"""
API routes for the storefront.
"""
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional

import structlog
from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    Header,
    HTTPException,
    Query,
    Request,
    Response,
    status,
)
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.admin import AdminService
from storefront.core.catalog import CatalogService, ProductQuery
from storefront.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    IdentityListingError,
    InvalidCartError,
    InvalidProductError,
    MissingCorrelationError,
    PaymentSessionError,
    ProductNotFoundError,
    SignatureVerificationError,
)
from storefront.core.newsletter import NewsletterService, WelcomeNotifier
from storefront.core.orders import OrderService
from storefront.database.connection import get_db
from storefront.integrations.firebase_auth import FirebaseIdentityProvider
from storefront.integrations.webhook_handler import WebhookHandler
from storefront.monitoring.health import HealthCheck

from .dependencies import (
    bearer_token,
    get_admin_service,
    get_catalog_service,
    get_health_check,
    get_identity_provider,
    get_newsletter_service,
    get_order_service,
    get_webhook_handler,
    get_welcome_notifier,
)
from .schemas import (
    CreateCheckoutSessionRequest,
    CreateCheckoutSessionResponse,
    FacetsResponse,
    HealthCheckResponse,
    IdentitySummaryResponse,
    OrderResponse,
    ProductInput,
    ProductResponse,
    SubscribeRequest,
    SubscribeResponse,
    WebhookResponse,
)

logger = structlog.get_logger(__name__)

# Create routers
checkout_router = APIRouter(tags=["checkout"])
webhook_router = APIRouter(tags=["webhooks"])
catalog_router = APIRouter(prefix="/products", tags=["catalog"])
orders_router = APIRouter(prefix="/orders", tags=["orders"])
newsletter_router = APIRouter(prefix="/newsletter", tags=["newsletter"])
admin_router = APIRouter(tags=["admin"])
monitoring_router = APIRouter(tags=["monitoring"])


async def _require_admin(
    token: Optional[str] = Depends(bearer_token),
    admin_service: AdminService = Depends(get_admin_service),
) -> str:
    try:
        return await admin_service.require_admin(token)
    except AuthorizationError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))


@checkout_router.post(
    "/createCheckoutSession",
    response_model=CreateCheckoutSessionResponse,
    summary="Start checkout",
    description="Create a pending order and a Stripe Checkout session for it",
)
async def create_checkout_session(
    request: Request,
    body: CreateCheckoutSessionRequest,
    token: Optional[str] = Depends(bearer_token),
    db: AsyncSession = Depends(get_db),
    order_service: OrderService = Depends(get_order_service),
    identity_provider: FirebaseIdentityProvider = Depends(get_identity_provider),
) -> Dict[str, Any]:
    """
    Start checkout for the submitted cart.

    The total is computed server-side. A signed-in caller's uid is recorded
    on the order; an unverifiable token is treated as a guest checkout.
    """
    start_time = time.time()

    user_id: Optional[str] = None
    if token:
        try:
            user_id = await identity_provider.verify_token(token)
        except AuthenticationError as e:
            logger.warning("checkout_token_ignored", error=str(e))

    success_url, cancel_url = order_service.settings.checkout_urls(
        request.headers.get("origin")
    )

    try:
        result = await order_service.create_order(
            items=[item.to_cart_item() for item in body.items],
            customer_info=body.customer_info.model_dump(mode="json"),
            db=db,
            user_id=user_id,
            success_url=success_url,
            cancel_url=cancel_url,
        )

    except InvalidCartError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    except PaymentSessionError as e:
        logger.error("api_checkout_payment_error", order_id=e.order_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create checkout session.",
        )

    except Exception as e:
        logger.error("api_checkout_unexpected_error", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create checkout session.",
        )

    logger.info(
        "api_checkout_success",
        order_id=result.order_id,
        session_id=result.payment_session_id,
        duration_seconds=time.time() - start_time,
    )
    return {"sessionId": result.payment_session_id}


@webhook_router.post(
    "/stripeWebhook",
    response_model=WebhookResponse,
    summary="Stripe webhook endpoint",
    description="Reconcile orders from signed Stripe events",
)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_db),
    webhook_handler: WebhookHandler = Depends(get_webhook_handler),
) -> Dict[str, Any]:
    """
    Handle Stripe webhook events.

    Any verified, parsed event is acknowledged with 200, including events
    whose order update failed.
    """
    body = await request.body()

    try:
        result = await webhook_handler.handle(body, stripe_signature, db)

    except SignatureVerificationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"Webhook Error: {e}"
        )

    except MissingCorrelationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"Webhook Error: {e}"
        )

    return {
        "received": True,
        "status": result.status,
        "eventId": result.event_id,
        "orderId": result.order_id,
    }


@admin_router.get(
    "/listUsers",
    response_model=List[IdentitySummaryResponse],
    summary="List users",
    description="List up to 1000 authenticated identities (administrators only)",
)
async def list_users(
    token: Optional[str] = Depends(bearer_token),
    admin_service: AdminService = Depends(get_admin_service),
) -> List[IdentitySummaryResponse]:
    try:
        identities = await admin_service.list_identities(token)

    except AuthorizationError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    except IdentityListingError as e:
        logger.error("api_list_users_error", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to list users."
        )

    return [IdentitySummaryResponse.model_validate(i) for i in identities]


@admin_router.get(
    "/admin/orders",
    response_model=List[OrderResponse],
    summary="List all orders",
)
async def list_all_orders(
    limit: int = Query(default=100, ge=1, le=1000),
    admin_uid: str = Depends(_require_admin),
    db: AsyncSession = Depends(get_db),
    order_service: OrderService = Depends(get_order_service),
) -> List[OrderResponse]:
    orders = await order_service.list_all_orders(db, limit=limit)
    return [OrderResponse.model_validate(o) for o in orders]


@admin_router.post(
    "/admin/products",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a product",
)
async def create_product(
    body: ProductInput,
    admin_uid: str = Depends(_require_admin),
    db: AsyncSession = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
) -> ProductResponse:
    try:
        product = await catalog.create_product(body.model_dump(), db)
    except InvalidProductError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return ProductResponse.model_validate(product)


@admin_router.put(
    "/admin/products/{product_id}",
    response_model=ProductResponse,
    summary="Update a product",
)
async def update_product(
    product_id: str,
    body: ProductInput,
    admin_uid: str = Depends(_require_admin),
    db: AsyncSession = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
) -> ProductResponse:
    try:
        product = await catalog.update_product(product_id, body.model_dump(), db)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidProductError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return ProductResponse.model_validate(product)


@admin_router.delete(
    "/admin/products/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a product",
)
async def delete_product(
    product_id: str,
    admin_uid: str = Depends(_require_admin),
    db: AsyncSession = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
) -> Response:
    try:
        await catalog.delete_product(product_id, db)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@catalog_router.get("", response_model=List[ProductResponse], summary="List products")
async def list_products(
    category: Optional[str] = None,
    max_price: Optional[Decimal] = Query(default=None, alias="maxPrice", ge=0),
    sizes: Optional[List[str]] = Query(default=None),
    colors: Optional[List[str]] = Query(default=None),
    search: Optional[str] = None,
    sort: str = Query(default="newest", pattern="^(newest|price-asc|price-desc)$"),
    limit: int = Query(default=9, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
) -> List[ProductResponse]:
    query = ProductQuery(
        category=category,
        max_price=max_price,
        sizes=sizes or [],
        colors=colors or [],
        search=search,
        sort=sort,
        limit=limit,
        offset=offset,
    )
    products = await catalog.list_products(query, db)
    return [ProductResponse.model_validate(p) for p in products]


@catalog_router.get("/featured", response_model=List[ProductResponse])
async def list_featured_products(
    limit: int = Query(default=4, ge=1, le=20),
    db: AsyncSession = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
) -> List[ProductResponse]:
    products = await catalog.list_featured(db, limit=limit)
    return [ProductResponse.model_validate(p) for p in products]


@catalog_router.get("/facets", response_model=FacetsResponse)
async def product_facets(
    db: AsyncSession = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
) -> Dict[str, List[str]]:
    return await catalog.facets(db)


@catalog_router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    db: AsyncSession = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
) -> ProductResponse:
    try:
        product = await catalog.get_product(product_id, db)
    except ProductNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found.")
    return ProductResponse.model_validate(product)


@catalog_router.get("/{product_id}/related", response_model=List[ProductResponse])
async def list_related_products(
    product_id: str,
    limit: int = Query(default=4, ge=1, le=20),
    db: AsyncSession = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
) -> List[ProductResponse]:
    try:
        products = await catalog.list_related(product_id, db, limit=limit)
    except ProductNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found.")
    return [ProductResponse.model_validate(p) for p in products]


@orders_router.get("/me", response_model=List[OrderResponse], summary="Order history")
async def my_orders(
    token: Optional[str] = Depends(bearer_token),
    db: AsyncSession = Depends(get_db),
    order_service: OrderService = Depends(get_order_service),
    identity_provider: FirebaseIdentityProvider = Depends(get_identity_provider),
) -> List[OrderResponse]:
    if not token:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No token provided.")
    try:
        uid = await identity_provider.verify_token(token)
    except AuthenticationError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token.")

    orders = await order_service.list_orders_for_user(uid, db)
    return [OrderResponse.model_validate(o) for o in orders]


@newsletter_router.post(
    "/subscribe",
    response_model=SubscribeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Subscribe to the newsletter",
)
async def subscribe(
    body: SubscribeRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    newsletter: NewsletterService = Depends(get_newsletter_service),
    notifier: WelcomeNotifier = Depends(get_welcome_notifier),
) -> Dict[str, Any]:
    """
    Subscribe an email address.

    A new subscriber gets one welcome email, sent after the response.
    """
    result = await newsletter.subscribe(str(body.email), db)

    if result.created:
        background_tasks.add_task(notifier.send_welcome, result.subscriber.email)
    else:
        response.status_code = status.HTTP_200_OK

    return {
        "email": result.subscriber.email,
        "subscribedAt": result.subscriber.subscribed_at,
        "created": result.created,
    }


@monitoring_router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health check",
    description="Check overall system health",
)
async def health(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    """Health check endpoint for monitoring."""
    try:
        return await health_check.check_all()
    except Exception as e:
        logger.error("health_check_error", error=str(e))
        return {
            "status": "unhealthy",
            "checks": {"error": str(e)},
        }


@monitoring_router.get(
    "/health/live",
    response_model=HealthCheckResponse,
    summary="Liveness probe",
)
async def liveness(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    return await health_check.liveness()


@monitoring_router.get(
    "/health/ready",
    response_model=HealthCheckResponse,
    summary="Readiness probe",
)
async def readiness(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    """Readiness probe endpoint."""
    result = await health_check.readiness()
    if result["status"] != "healthy":
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result)
    return result


@monitoring_router.get(
    "/metrics",
    summary="Prometheus metrics",
    include_in_schema=False,
)
async def prometheus_metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
