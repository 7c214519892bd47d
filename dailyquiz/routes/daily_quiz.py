from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from dailyquiz.core.database import get_db
from dailyquiz.core.exceptions import (
    ArtifactPublishError,
    DuplicateQuizError,
    NoQuestionsSelectedError,
    QuizNotFoundError,
    TemplateValidationError,
)
from dailyquiz.repositories import (
    CompositionLogRepository,
    DailyQuizRepository,
    QuestionRepository,
)
from dailyquiz.schemas.daily_quiz import (
    ComposeRequest,
    CompositionLogListResponse,
    CompositionResponse,
    CompositionStatsResponse,
    ConfigurationOptionsResponse,
    DailyQuizMode,
    PreviewResponse,
    SystemHealthResponse,
    TemplatePublishResponse,
)
from dailyquiz.services.artifact_store import get_artifact_publisher
from dailyquiz.services.composer import DailyQuizComposerService

router = APIRouter(prefix="/daily-quiz", tags=["daily-quiz"])


def get_composer(db: Session = Depends(get_db)) -> DailyQuizComposerService:
    return DailyQuizComposerService(
        question_store=QuestionRepository(db),
        quiz_store=DailyQuizRepository(db),
        log_store=CompositionLogRepository(db),
        publisher=get_artifact_publisher(),
    )


def _internal_error(e: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Internal server error: {str(e)}",
    )


@router.post(
    "/compose",
    response_model=CompositionResponse,
    status_code=status.HTTP_201_CREATED,
)
def compose_daily_quiz(
    request: ComposeRequest,
    composer: DailyQuizComposerService = Depends(get_composer),
):
    """
    Compose the daily quiz for a drop time

    Selects questions, stores the quiz and publishes its template. A template
    failure does not undo the quiz; it is reported in `template_error`.
    """
    try:
        return composer.compose_daily_quiz(request.drop_at_utc, request.mode)
    except DuplicateQuizError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except NoQuestionsSelectedError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        raise _internal_error(e)


@router.get("/preview", response_model=PreviewResponse)
def preview_daily_quiz(
    drop_at_utc: datetime,
    mode: DailyQuizMode = DailyQuizMode.MIX,
    composer: DailyQuizComposerService = Depends(get_composer),
):
    """Preview a composition without creating any records"""
    try:
        return composer.preview_composition(drop_at_utc, mode)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        raise _internal_error(e)


@router.post("/{quiz_id}/publish", response_model=TemplatePublishResponse)
def publish_template(
    quiz_id: str,
    composer: DailyQuizComposerService = Depends(get_composer),
):
    """Publish the template if it hasn't been published yet (safe to retry)"""
    try:
        return composer.publish_template(quiz_id)
    except QuizNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except TemplateValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.issues
        )
    except ArtifactPublishError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        raise _internal_error(e)


@router.post("/{quiz_id}/regenerate-template", response_model=TemplatePublishResponse)
def regenerate_template(
    quiz_id: str,
    composer: DailyQuizComposerService = Depends(get_composer),
):
    """Rebuild the template under a new version and publish it"""
    try:
        return composer.regenerate_template(quiz_id)
    except QuizNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except TemplateValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.issues
        )
    except ArtifactPublishError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        raise _internal_error(e)


@router.get("/stats", response_model=CompositionStatsResponse)
def get_composition_stats(composer: DailyQuizComposerService = Depends(get_composer)):
    try:
        return composer.get_composition_stats()
    except Exception as e:
        raise _internal_error(e)


@router.get("/health", response_model=SystemHealthResponse)
def get_system_health(composer: DailyQuizComposerService = Depends(get_composer)):
    return composer.get_system_health()


@router.get("/logs", response_model=CompositionLogListResponse)
def get_recent_composition_logs(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    composer: DailyQuizComposerService = Depends(get_composer),
):
    try:
        return composer.get_recent_composition_logs(limit=limit, offset=offset)
    except Exception as e:
        raise _internal_error(e)


@router.get("/config", response_model=ConfigurationOptionsResponse)
def get_configuration_options(composer: DailyQuizComposerService = Depends(get_composer)):
    return composer.get_configuration_options()
