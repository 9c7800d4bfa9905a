"""
FastAPI main application for the flashcard study app.
"""

import logging
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response

from cardstack.config import ConfigManager, Settings
from cardstack.database import ConfigDAO, Database, FlashcardDAO, TagDAO
from cardstack.export import export_delimited, export_json
from cardstack.ledger import (
    as_local_naive,
    count_due_cards,
    create_card,
    is_done_for_now,
)
from cardstack.parser import build_cards, parse_rows
from cardstack.schemas import (
    ConfigResponse,
    ConfigUpdate,
    DueGroup,
    Flashcard,
    FlashcardCreate,
    FlashcardUpdate,
    ImportedRow,
    ImportErrorRow,
    ImportPreview,
    ImportRequest,
    ReviewRequest,
    ReviewResponse,
    StudyCard,
    StudyProgress,
    StudyTags,
    Tag,
    TagCreate,
    TagUpdate,
    TagWithCounts,
    UndoResponse,
)
from cardstack.search import SearchIndex
from cardstack.selection import (
    card_study_mode,
    displayed_tags,
    due_queue,
    group_by_due_offset,
    matches,
)
from cardstack.spaced_repetition import FSRS, Scheduler
from cardstack.undo import UndoStack, submit_review

logger = logging.getLogger(__name__)

NO_FLASHCARD_DUE = "No flashcard due."

# Initialize FastAPI app
app = FastAPI(
    title="Flashcard Study App",
    description="Flashcards with FSRS spaced repetition, tag filters and undoable reviews",
    version="1.0.0",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global instances (will be replaced with dependency injection)
_db_instance: Database | None = None
_config_manager_instance: ConfigManager | None = None
_undo_stack_instance: UndoStack | None = None


def get_db() -> Database:
    """Dependency to get database instance."""
    global _db_instance
    if _db_instance is None:
        _db_instance = Database(Settings().database_url)
    return _db_instance


def get_config_manager() -> ConfigManager:
    """Dependency to get config manager instance."""
    global _config_manager_instance
    if _config_manager_instance is None:
        db = get_db()
        config_dao = ConfigDAO(db)
        _config_manager_instance = ConfigManager(config_dao=config_dao)
    return _config_manager_instance


def get_undo_stack(config_manager: ConfigManager = Depends(get_config_manager)) -> UndoStack:
    """Dependency to get the undo stack of the study session."""
    global _undo_stack_instance
    if _undo_stack_instance is None:
        _undo_stack_instance = UndoStack(maxlen=config_manager.get_undo_depth())
    return _undo_stack_instance


def get_scheduler(config_manager: ConfigManager = Depends(get_config_manager)) -> Scheduler:
    """Dependency to get a scheduler using the configured parameters."""
    return Scheduler(FSRS(config_manager.get_scheduler_parameters()))


def _get_flashcard_or_404(flashcard_dao: FlashcardDAO, flashcard_id: str) -> Flashcard:
    flashcard = flashcard_dao.get_by_id(flashcard_id)
    if not flashcard:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    return flashcard


# Health check
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# Flashcard endpoints
@app.post("/api/flashcards", response_model=Flashcard)
async def create_flashcard(flashcard_data: FlashcardCreate, db: Database = Depends(get_db)):
    """Create a flashcard."""
    flashcard = create_card(
        front=flashcard_data.front,
        back=flashcard_data.back,
        notes=flashcard_data.notes,
        tag_ids=flashcard_data.tag_ids,
    )
    return FlashcardDAO(db).save(flashcard)


@app.get("/api/flashcards", response_model=list[Flashcard])
async def get_flashcards(db: Database = Depends(get_db)):
    """Get all flashcards, by next review date."""
    return FlashcardDAO(db).get_all()


@app.get("/api/flashcards/groups", response_model=list[DueGroup])
async def get_flashcard_groups(filtered: bool = True, db: Database = Depends(get_db)):
    """Get flashcards grouped by due day, optionally restricted to the study filter."""
    flashcards = FlashcardDAO(db).get_non_empty()
    if filtered:
        selection = TagDAO(db).get_selection()
        flashcards = [flashcard for flashcard in flashcards if matches(flashcard, selection)]
    return group_by_due_offset(flashcards)


@app.get("/api/flashcards/{flashcard_id}", response_model=Flashcard)
async def get_flashcard(flashcard_id: str, db: Database = Depends(get_db)):
    """Get a flashcard by ID."""
    return _get_flashcard_or_404(FlashcardDAO(db), flashcard_id)


@app.put("/api/flashcards/{flashcard_id}")
async def update_flashcard(
    flashcard_id: str, flashcard_data: FlashcardUpdate, db: Database = Depends(get_db)
):
    """Edit a flashcard. A flashcard left without front and back is deleted."""
    flashcard_dao = FlashcardDAO(db)
    flashcard = _get_flashcard_or_404(flashcard_dao, flashcard_id)

    if flashcard_data.front is not None:
        flashcard.front = flashcard_data.front
    if flashcard_data.back is not None:
        flashcard.back = flashcard_data.back
    if flashcard_data.notes is not None:
        flashcard.notes = flashcard_data.notes
    if flashcard_data.tag_ids is not None:
        flashcard.tag_ids = set(flashcard_data.tag_ids)
    if flashcard_data.next_review_date is not None:
        # Manual override; bypasses the scheduler
        flashcard.next_review_date = as_local_naive(flashcard_data.next_review_date)
    flashcard.touch()

    saved = flashcard_dao.save(flashcard)
    if saved is None:
        return {"deleted": True, "message": "Empty flashcard deleted"}
    return saved


@app.delete("/api/flashcards/{flashcard_id}")
async def delete_flashcard(flashcard_id: str, db: Database = Depends(get_db)):
    """Delete a flashcard and its reviews."""
    success = FlashcardDAO(db).delete(flashcard_id)
    if not success:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    logger.info("Deleted flashcard %s", flashcard_id)
    return {"message": "Flashcard deleted successfully"}


# Tag endpoints
@app.post("/api/tags", response_model=Tag)
async def create_tag(tag_data: TagCreate, db: Database = Depends(get_db)):
    """Create a tag."""
    return TagDAO(db).create(tag_data)


@app.get("/api/tags", response_model=list[TagWithCounts])
async def get_tags(db: Database = Depends(get_db)):
    """Get all tags with flashcard counts, by name."""
    tag_dao = TagDAO(db)
    return _with_counts(tag_dao, tag_dao.get_all())


def _with_counts(tag_dao: TagDAO, tags: list[Tag]) -> list[TagWithCounts]:
    now = datetime.now()
    tags_with_counts = []
    for tag in tags:
        flashcards = tag_dao.get_committed_cards(tag.id)
        tags_with_counts.append(
            TagWithCounts(
                **tag.model_dump(),
                total_cards=len(flashcards),
                due_cards=count_due_cards(flashcards, now),
            )
        )
    return tags_with_counts


@app.put("/api/tags/{tag_id}", response_model=Tag)
async def update_tag(tag_id: str, tag_data: TagUpdate, db: Database = Depends(get_db)):
    """Update a tag's name, study mode or filter bucket."""
    tag = TagDAO(db).update(tag_id, tag_data)
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")
    return tag


@app.delete("/api/tags/{tag_id}")
async def delete_tag(tag_id: str, db: Database = Depends(get_db)):
    """Delete a tag. Its flashcards are kept."""
    success = TagDAO(db).delete(tag_id)
    if not success:
        raise HTTPException(status_code=404, detail="Tag not found")
    return {"message": "Tag deleted successfully"}


# Study endpoints
@app.get("/api/study/next", response_model=StudyCard)
async def get_next_flashcard(db: Database = Depends(get_db)):
    """Get the flashcard to study next, given the tag filter."""
    tag_dao = TagDAO(db)
    tags_by_id = tag_dao.get_by_ids()
    selection = tag_dao.get_selection()

    queue = due_queue(
        FlashcardDAO(db).get_non_empty(),
        tags_by_id,
        selection if selection.is_active else None,
    )
    if not queue:
        return StudyCard(message=NO_FLASHCARD_DUE)

    now = datetime.now()
    flashcard = queue[0]
    return StudyCard(
        flashcard=flashcard,
        study_mode=card_study_mode(flashcard, tags_by_id),
        due_count=count_due_cards(queue, now),
    )


@app.get("/api/study/tags", response_model=StudyTags)
async def get_study_tags(db: Database = Depends(get_db)):
    """Get study progress: the whole queue, then the displayed tags, given the tag filter."""
    tag_dao = TagDAO(db)
    tags = tag_dao.get_all()
    selection = tag_dao.get_selection()

    queue = due_queue(
        FlashcardDAO(db).get_non_empty(),
        {tag.id: tag for tag in tags},
        selection if selection.is_active else None,
    )
    return StudyTags(
        all=StudyProgress(total_cards=len(queue), due_cards=count_due_cards(queue)),
        tags=_with_counts(tag_dao, displayed_tags(tags, selection)),
    )


@app.post("/api/study/review", response_model=ReviewResponse)
async def review_flashcard(
    review_request: ReviewRequest,
    db: Database = Depends(get_db),
    undo_stack: UndoStack = Depends(get_undo_stack),
    scheduler: Scheduler = Depends(get_scheduler),
):
    """Record the outcome of a review and reschedule the flashcard."""
    flashcard_dao = FlashcardDAO(db)
    flashcard = _get_flashcard_or_404(flashcard_dao, review_request.flashcard_id)

    review = submit_review(flashcard, review_request.outcome, undo_stack, scheduler=scheduler)
    flashcard = flashcard_dao.save(flashcard)

    logger.info(
        "Flashcard %s reviewed (%s), next review at %s",
        flashcard.id,
        review.outcome.value,
        flashcard.next_review_date.isoformat(),
    )
    return ReviewResponse(
        flashcard=flashcard,
        review=review,
        done_for_now=is_done_for_now(flashcard),
        undo_available=len(undo_stack),
    )


@app.post("/api/study/undo", response_model=UndoResponse)
async def undo_review(
    db: Database = Depends(get_db), undo_stack: UndoStack = Depends(get_undo_stack)
):
    """Undo the most recent review of the session."""
    token = undo_stack.pop()
    if token is None:
        return UndoResponse(undone=False, undo_available=0)

    flashcard_dao = FlashcardDAO(db)
    flashcard = flashcard_dao.get_by_id(token.card_id)
    if flashcard is None:
        return UndoResponse(undone=False, undo_available=len(undo_stack))

    undone = token.undo(flashcard)
    if undone:
        flashcard = flashcard_dao.save(flashcard)
    return UndoResponse(flashcard=flashcard, undone=undone, undo_available=len(undo_stack))


# Import endpoints
def _parse_import(import_request: ImportRequest, flashcard_dao: FlashcardDAO):
    result = parse_rows(
        import_request.text,
        separator=import_request.separator,
        detect_quotes=import_request.detect_quotes,
        existing_cards=flashcard_dao.get_non_empty(),
    )
    if result.separator_error:
        raise HTTPException(status_code=400, detail=result.separator_error)
    return result


def _to_preview(result, imported_count: int = 0) -> ImportPreview:
    return ImportPreview(
        rows=[
            ImportedRow(
                row=row.row,
                front=row.front,
                back=row.back,
                notes=row.notes,
                conflicts_with=row.conflicts_with.id if row.conflicts_with else None,
            )
            for row in result.rows
        ],
        errors=[ImportErrorRow(row=error.row, error=error.error) for error in result.errors],
        imported_count=imported_count,
    )


@app.post("/api/import/preview", response_model=ImportPreview)
async def preview_import(import_request: ImportRequest, db: Database = Depends(get_db)):
    """Parse delimited text without creating flashcards."""
    result = _parse_import(import_request, FlashcardDAO(db))
    return _to_preview(result)


@app.post("/api/import", response_model=ImportPreview)
async def import_flashcards(import_request: ImportRequest, db: Database = Depends(get_db)):
    """Create flashcards from delimited text. Rows with errors are skipped."""
    flashcard_dao = FlashcardDAO(db)
    result = _parse_import(import_request, flashcard_dao)

    imported_count = 0
    for flashcard in build_cards(result, import_request.tag_ids):
        if flashcard_dao.save(flashcard) is not None:
            imported_count += 1

    logger.info(
        "Imported %d flashcard(s), %d row(s) with errors", imported_count, len(result.errors)
    )
    return _to_preview(result, imported_count=imported_count)


# Export endpoint
@app.get("/api/export")
async def export_flashcards(
    format: str = Query("csv", pattern="^(csv|json)$"),
    separator: str = ",",
    quote_values: bool = True,
    db: Database = Depends(get_db),
):
    """Export all flashcards as delimited text or JSON."""
    flashcards = FlashcardDAO(db).get_non_empty()

    if format == "json":
        content = export_json(flashcards, TagDAO(db).get_by_ids())
        return Response(content=content, media_type="application/json")

    return PlainTextResponse(export_delimited(flashcards, separator, quote_values))


# Search endpoint
@app.get("/api/search", response_model=list[Flashcard])
async def search_flashcards(q: str, prefix: bool = False, db: Database = Depends(get_db)):
    """Search flashcards by front, back or notes."""
    index = SearchIndex(
        FlashcardDAO(db).get_non_empty(),
        key=lambda flashcard: "\n".join((flashcard.front, flashcard.back, flashcard.notes)),
    )
    if prefix:
        return list(index.starting_with(q))
    return list(index.including(q))


# Configuration endpoints
@app.get("/api/config", response_model=ConfigResponse)
async def get_config(config_manager: ConfigManager = Depends(get_config_manager)):
    """Get configuration."""
    return config_manager.get_config_response()


@app.put("/api/config", response_model=ConfigResponse)
async def update_config(
    config_update: ConfigUpdate,
    config_manager: ConfigManager = Depends(get_config_manager),
    undo_stack: UndoStack = Depends(get_undo_stack),
):
    """Update configuration."""
    result = config_manager.update_config(config_update)
    # Apply new depth to the running session
    if undo_stack.maxlen != result.undo_depth:
        undo_stack.resize(result.undo_depth)
    return result


if __name__ == "__main__":
    import uvicorn

    settings = Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
