"""Weekly token reward proofs and claim marking."""

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.rewards_service.errors import RewardNotFound
from services.rewards_service.schemas import (
    RewardBatchResponse,
    RewardClaimResponse,
    RewardEventResponse,
    RewardProofResponse,
)
from services.rewards_service.services.claims import (
    get_batch,
    get_reward_proof,
    mark_rewards_claimed,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/rewards", tags=["rewards"])


@router.get("/{week_key}/proof", response_model=RewardProofResponse)
async def get_proof(
    week_key: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """The caller's leaf amount, index and Merkle proof for a week."""
    proof = await get_reward_proof(db, week_key=week_key, user_id=current_user.user_id)
    return RewardProofResponse(
        week_key=proof.week_key,
        user_id=proof.user_id,
        wallet_address=proof.wallet_address,
        merkle_index=proof.merkle_index,
        amount=proof.amount,
        merkle_root=proof.merkle_root,
        proof=proof.proof,
        events=[RewardEventResponse.model_validate(e) for e in proof.events],
    )


@router.post("/{week_key}/claim", response_model=RewardClaimResponse)
async def claim_rewards(
    week_key: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Record that the caller has claimed the week's rewards on-chain."""
    claimed = await mark_rewards_claimed(db, week_key=week_key, user_id=current_user.user_id)
    return RewardClaimResponse(week_key=week_key, claimed=claimed, already_claimed=claimed == 0)


@router.get("/{week_key}", response_model=RewardBatchResponse)
async def get_reward_batch(
    week_key: str,
    _current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Published totals and Merkle root for a week."""
    batch = await get_batch(db, week_key)
    if batch is None:
        raise RewardNotFound(f"No reward batch for week {week_key}")
    return batch
