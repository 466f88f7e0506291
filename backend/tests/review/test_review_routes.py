"""
tests/review/test_review_routes.py

Test cases for review API endpoints.
Covers submitting reviews in both directions, author edits and deletes,
admin moderation, role gating and error mapping.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from fastapi import status
from httpx import AsyncClient

from fixlink.core.exceptions import ConflictError
from fixlink.core.schemas import IdentityContext
from fixlink.database.enums import UserRole
from fixlink.engagement.models import EngagementStatus
from fixlink.review import schemas as review_schemas
from fixlink.review import services as review_services
from fixlink.review.models import ReviewDirection

pytestmark = pytest.mark.usefixtures("override_get_db", "override_get_notifier")

CUSTOMER = IdentityContext(subject_id=uuid4(), role=UserRole.CUSTOMER)
WORKER = IdentityContext(subject_id=uuid4(), role=UserRole.WORKER)
ADMIN = IdentityContext(subject_id=uuid4(), role=UserRole.ADMIN)


def fake_outcome(
    direction: ReviewDirection = ReviewDirection.CUSTOMER_TO_WORKER,
    is_visible: bool = True,
    new_average: float | None = 4.5,
) -> review_schemas.ReviewOutcome:
    now = datetime.now(timezone.utc)
    review = review_schemas.ReviewRead(
        id=uuid4(),
        engagement_id=uuid4(),
        direction=direction,
        author_id=CUSTOMER.subject_id
        if direction == ReviewDirection.CUSTOMER_TO_WORKER
        else WORKER.subject_id,
        worker_id=WORKER.subject_id,
        customer_id=CUSTOMER.subject_id,
        rating=5,
        comment="Great job",
        is_visible=is_visible,
        created_at=now,
        updated_at=now,
    )
    return review_schemas.ReviewOutcome(review=review, new_average=new_average)


# ---------------------------------------------------
# Submission Endpoints
# ---------------------------------------------------
@pytest.mark.asyncio
@patch.object(review_services.ReviewService, "record_review", new_callable=AsyncMock)
async def test_record_review(
    mock_record_review: AsyncMock, async_client: AsyncClient, act_as
) -> None:
    """Customer reviews the worker of a completed engagement."""
    outcome = fake_outcome()
    mock_record_review.return_value = outcome
    engagement_id = uuid4()
    act_as(CUSTOMER)

    response = await async_client.post(
        f"/reviews/{engagement_id}", json={"rating": 5, "comment": "Great job"}
    )

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["new_average"] == 4.5
    assert data["review"]["id"] == str(outcome.review.id)
    mock_record_review.assert_awaited_once_with(
        engagement_id=engagement_id,
        identity=CUSTOMER,
        data=review_schemas.ReviewCreate(rating=5, comment="Great job"),
    )


@pytest.mark.asyncio
@patch.object(review_services.ReviewService, "record_review", new_callable=AsyncMock)
async def test_record_review_duplicate(
    mock_record_review: AsyncMock, async_client: AsyncClient, act_as
) -> None:
    mock_record_review.side_effect = ConflictError("Review already submitted for this engagement")
    act_as(CUSTOMER)

    response = await async_client.post(f"/reviews/{uuid4()}", json={"rating": 4})

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["detail"]["error"] == "Review already submitted for this engagement"


@pytest.mark.asyncio
@pytest.mark.parametrize("rating", [0, 6])
async def test_record_review_rating_out_of_range(
    rating: int, async_client: AsyncClient, act_as
) -> None:
    act_as(CUSTOMER)
    response = await async_client.post(f"/reviews/{uuid4()}", json={"rating": rating})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


@pytest.mark.asyncio
async def test_worker_cannot_review_worker(async_client: AsyncClient, act_as) -> None:
    act_as(WORKER)
    response = await async_client.post(f"/reviews/{uuid4()}", json={"rating": 5})
    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.asyncio
@patch.object(review_services.ReviewService, "rate_customer", new_callable=AsyncMock)
async def test_rate_customer(
    mock_rate_customer: AsyncMock, async_client: AsyncClient, act_as
) -> None:
    mock_rate_customer.return_value = fake_outcome(ReviewDirection.WORKER_TO_CUSTOMER, new_average=3.0)
    engagement_id = uuid4()
    act_as(WORKER)

    response = await async_client.post(
        f"/reviews/{engagement_id}/customer-rating", json={"rating": 3}
    )

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["review"]["direction"] == ReviewDirection.WORKER_TO_CUSTOMER.value
    mock_rate_customer.assert_awaited_once()


# ---------------------------------------------------
# Author Endpoints
# ---------------------------------------------------
@pytest.mark.asyncio
@patch.object(review_services.ReviewService, "edit_review", new_callable=AsyncMock)
async def test_edit_review(mock_edit_review: AsyncMock, async_client: AsyncClient, act_as) -> None:
    mock_edit_review.return_value = fake_outcome()
    review_id = uuid4()
    act_as(CUSTOMER)

    response = await async_client.patch(f"/reviews/{review_id}", json={"rating": 5})

    assert response.status_code == status.HTTP_200_OK
    mock_edit_review.assert_awaited_once_with(
        review_id=review_id, identity=CUSTOMER, data=review_schemas.ReviewUpdate(rating=5)
    )


@pytest.mark.asyncio
async def test_edit_review_requires_a_change(async_client: AsyncClient, act_as) -> None:
    act_as(CUSTOMER)
    response = await async_client.patch(f"/reviews/{uuid4()}", json={})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


@pytest.mark.asyncio
@patch.object(review_services.ReviewService, "hide_review", new_callable=AsyncMock)
async def test_author_delete_hides_review(
    mock_hide_review: AsyncMock, async_client: AsyncClient, act_as
) -> None:
    mock_hide_review.return_value = fake_outcome(is_visible=False, new_average=0.0)
    review_id = uuid4()
    act_as(CUSTOMER)

    response = await async_client.delete(f"/reviews/{review_id}")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["review"]["is_visible"] is False
    mock_hide_review.assert_awaited_once_with(
        review_id=review_id, identity=CUSTOMER, reason="Deleted by author"
    )


# ---------------------------------------------------
# Moderation Endpoints
# ---------------------------------------------------
@pytest.mark.asyncio
@patch.object(review_services.ReviewService, "hide_review", new_callable=AsyncMock)
async def test_admin_hides_review(
    mock_hide_review: AsyncMock, async_client: AsyncClient, act_as
) -> None:
    mock_hide_review.return_value = fake_outcome(is_visible=False)
    review_id = uuid4()
    act_as(ADMIN)

    response = await async_client.put(f"/reviews/{review_id}/hide", json={"reason": "Spam"})

    assert response.status_code == status.HTTP_200_OK
    mock_hide_review.assert_awaited_once_with(review_id=review_id, identity=ADMIN, reason="Spam")


@pytest.mark.asyncio
@pytest.mark.parametrize("identity", [CUSTOMER, WORKER])
async def test_moderation_is_admin_only(
    identity: IdentityContext, async_client: AsyncClient, act_as
) -> None:
    act_as(identity)
    review_id = uuid4()

    hide = await async_client.put(f"/reviews/{review_id}/hide", json={"reason": "Spam"})
    restore = await async_client.put(f"/reviews/{review_id}/restore")

    assert hide.status_code == status.HTTP_403_FORBIDDEN
    assert restore.status_code == status.HTTP_403_FORBIDDEN


# ---------------------------------------------------
# End to End
# ---------------------------------------------------
@pytest.mark.asyncio
async def test_review_round_trip_against_database(
    async_client: AsyncClient, act_as, make_customer, make_worker, make_engagement, admin_identity
) -> None:
    customer = await make_customer()
    worker = await make_worker(rating_average=4.0, rating_count=3)
    engagement = await make_engagement(
        customer.user_id, worker.user_id, status=EngagementStatus.COMPLETED
    )

    act_as(IdentityContext(subject_id=customer.user_id, role=UserRole.CUSTOMER))
    created = await async_client.post(f"/reviews/{engagement.id}", json={"rating": 2})
    assert created.status_code == status.HTTP_201_CREATED
    assert created.json()["new_average"] == pytest.approx(3.5)
    review_id = created.json()["review"]["id"]

    act_as(admin_identity)
    hidden = await async_client.put(f"/reviews/{review_id}/hide", json={"reason": "Off topic"})
    assert hidden.status_code == status.HTTP_200_OK
    assert hidden.json()["review"]["hidden_reason"] == "Off topic"
    # no visible reviews remain after the recompute
    assert hidden.json()["new_average"] == 0.0
