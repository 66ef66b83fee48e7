"""
Message API Routes
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from topicgen.db.storage import get_db
from topicgen.models.message import GroupedMessages, MessageFilter
from topicgen.retrieval.retriever import get_filtered_messages_grouped
from topicgen.utils.validation import (
    InvalidRangeError,
    MalformedIdentityReferenceError,
    validate_date_range,
    validate_identity_reference,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/grouped", response_model=GroupedMessages)
async def get_grouped_messages(
    start_date: str = Query(..., description="Inclusive start (ISO-8601)"),
    end_date: str = Query(..., description="Inclusive end (ISO-8601)"),
    sender: Optional[List[str]] = Query(None, description="Only messages from these users"),
    mention: Optional[List[str]] = Query(None, description="Only messages mentioning these users or groups"),
    include_threads: bool = Query(False, description="Add in-window members of matched threads"),
    db: Session = Depends(get_db),
):
    """
    Messages in a date range grouped into threads and standalone messages.

    Examples:
    - GET /api/messages/grouped?start_date=2025-01-01T00:00:00Z&end_date=2025-01-31T23:59:59Z
    - GET /api/messages/grouped?start_date=...&end_date=...&mention=@alice&include_threads=true
    """
    try:
        start, end = validate_date_range(start_date, end_date)
        message_filter = MessageFilter(
            start_date=start,
            end_date=end,
            sender_refs=[validate_identity_reference(s) for s in sender] if sender else None,
            mention_targets=[validate_identity_reference(m) for m in mention] if mention else None,
            include_threads=include_threads,
        )
    except (InvalidRangeError, MalformedIdentityReferenceError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    grouped = get_filtered_messages_grouped(db, message_filter)
    logger.info(f"Returning {grouped.total_message_count} grouped messages")
    return grouped
