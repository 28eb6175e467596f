"""
Triage Admin Routes
===================

Knowledge-base management and triage configuration endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from helpdesk.config import ArticleStatus
from helpdesk.triage.application import (
    ConfigService, KnowledgeBaseService,
    CreateArticleRequest, ArticleResponse, ArticleListResponse,
    UpdateConfigRequest, ConfigResponse,
)
from helpdesk.triage.interfaces.dependencies import get_config_service, get_kb_service

kb_router = APIRouter(prefix="/kb", tags=["Knowledge Base"])
config_router = APIRouter(prefix="/config", tags=["Configuration"])


# ========== Knowledge Base ==========

@kb_router.post(
    "/articles",
    response_model=ArticleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an article",
    description="Only `published` articles are visible to triage retrieval."
)
async def create_article(
    payload: CreateArticleRequest,
    service: KnowledgeBaseService = Depends(get_kb_service)
):
    article = await service.create_article(
        title=payload.title,
        body=payload.body,
        tags=payload.tags,
        status=ArticleStatus(payload.status)
    )
    return ArticleResponse.from_domain(article)


@kb_router.get("/articles/{article_id}", response_model=ArticleResponse, summary="Get an article")
async def get_article(article_id: str, service: KnowledgeBaseService = Depends(get_kb_service)):
    return ArticleResponse.from_domain(await service.get_article(article_id))


@kb_router.get(
    "/articles",
    response_model=ArticleListResponse,
    summary="Search published articles",
    description="Text search ranked by relevance when `query` is given; otherwise filter by `tag`."
)
async def search_articles(
    query: Optional[str] = Query(None, max_length=500),
    tag: Optional[str] = Query(None, max_length=100),
    limit: int = Query(10, ge=1, le=50),
    service: KnowledgeBaseService = Depends(get_kb_service)
):
    articles = await service.search(query=query, tag=tag, limit=limit)
    return ArticleListResponse(
        articles=[ArticleResponse.from_domain(article) for article in articles],
        count=len(articles)
    )


# ========== Configuration ==========

@config_router.get("", response_model=ConfigResponse, summary="Get triage configuration")
async def get_config(service: ConfigService = Depends(get_config_service)):
    return ConfigResponse.from_domain(await service.get_config())


@config_router.put(
    "",
    response_model=ConfigResponse,
    summary="Update triage configuration",
    description="Partial update; omitted fields keep their current value."
)
async def update_config(
    payload: UpdateConfigRequest,
    service: ConfigService = Depends(get_config_service)
):
    config = await service.update_config(
        auto_close_enabled=payload.auto_close_enabled,
        confidence_threshold=payload.confidence_threshold,
        sla_hours=payload.sla_hours
    )
    return ConfigResponse.from_domain(config)
