import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Depends, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from debtlens.adapters.factory import build_adapter
from debtlens.adapters.github import GitHubClient, parse_repo_url
from debtlens.config import Settings, get_settings
from debtlens.models.api import (
    CreateRepoRequest, RepositoryOut, ScanOut, ScanDetail, FileAnalysisOut,
    StatsOut, RegisterRequest, LoginRequest, UserOut,
)
from debtlens.models.db import Repository, User
from debtlens.services.analyzer import AnalysisService
from debtlens.services.auth import AuthService, CurrentUser, get_current_user, MIN_PASSWORD_LENGTH
from debtlens.services.report import render_scan_report, report_filename
from debtlens.services.scanner import ScannerService
from debtlens.services.stats import StatsService
from debtlens.services.storage import Storage
from debtlens.utils.db import get_db, build_engine, build_session_factory, create_tables

logger = logging.getLogger("debtlens")


def build_scanner(settings: Settings, storage: Storage) -> ScannerService:
    source = GitHubClient(
        base_url=settings.GITHUB_API_URL,
        token=settings.GITHUB_TOKEN or None,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
    analyzer = AnalysisService(
        build_adapter(settings),
        max_chars=settings.ANALYSIS_MAX_CHARS,
        max_issues=settings.ANALYSIS_MAX_ISSUES,
        max_tokens=settings.ANALYSIS_MAX_TOKENS,
    )
    return ScannerService(
        storage=storage,
        source=source,
        analyzer=analyzer,
        max_files=settings.SCAN_MAX_FILES,
        concurrency=settings.SCAN_CONCURRENCY,
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    session_factory=None,
    scanner: Optional[ScannerService] = None,
) -> FastAPI:
    """
    Build the API. Anything not passed in is constructed from settings when
    the app starts; tests pass a session factory and a scanner wired to fakes.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = None
        if app.state.session_factory is None:
            engine = build_engine(settings.DATABASE_URL)
            await create_tables(engine)
            app.state.session_factory = build_session_factory(engine)
            app.state.storage = Storage(app.state.session_factory)
        if app.state.scanner is None:
            app.state.scanner = build_scanner(settings, app.state.storage)
        yield
        # Shutdown: let running scans finish, then release connections
        await app.state.scanner.drain()
        await app.state.scanner.source.aclose()
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title="DebtLens",
        description="AI code-quality scans for public GitHub repositories.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.storage = Storage(session_factory) if session_factory is not None else None
    app.state.scanner = scanner

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        if errors and errors[0].get("type") == "string_pattern_mismatch":
            message = "Must be a valid GitHub repository URL"
        return JSONResponse(status_code=400, content={"detail": message})

    register_routes(app)
    return app


# ─── Dependencies ────────────────────────────────────────

def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_scanner(request: Request) -> ScannerService:
    return request.app.state.scanner


async def get_owned_repo(
    repo_id: int,
    user: CurrentUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> Repository:
    """404 for repositories that do not exist or belong to someone else."""
    repo = await storage.get_repository(repo_id)
    if repo is None or repo.user_id != user.id:
        raise HTTPException(status_code=404, detail="Repo not found")
    return repo


def _set_session_cookie(response: Response, settings: Settings, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_TTL_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )


def register_routes(app: FastAPI) -> None:

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    # ─── Auth ────────────────────────────────────────────

    @app.post("/api/auth/register", response_model=UserOut, status_code=201)
    async def register(body: RegisterRequest, response: Response, request: Request, db: AsyncSession = Depends(get_db)):
        settings = request.app.state.settings
        if not body.email or not body.password:
            raise HTTPException(status_code=400, detail="Email and password are required")
        if len(body.password) < MIN_PASSWORD_LENGTH:
            raise HTTPException(status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if await AuthService.get_user_by_email(db, body.email) is not None:
            raise HTTPException(status_code=409, detail="An account with this email already exists")

        user = await AuthService.register(db, body.email, body.password, body.first_name, body.last_name)
        session = await AuthService.create_session(db, user.id, settings.SESSION_TTL_DAYS)
        _set_session_cookie(response, settings, session.token)
        return user

    @app.post("/api/auth/login", response_model=UserOut)
    async def login(body: LoginRequest, response: Response, request: Request, db: AsyncSession = Depends(get_db)):
        settings = request.app.state.settings
        if not body.email or not body.password:
            raise HTTPException(status_code=400, detail="Email and password are required")

        user = await AuthService.authenticate(db, body.email, body.password)
        if user is None:
            raise HTTPException(status_code=401, detail="Invalid email or password")

        session = await AuthService.create_session(db, user.id, settings.SESSION_TTL_DAYS)
        _set_session_cookie(response, settings, session.token)
        return user

    @app.post("/api/auth/logout")
    async def logout(request: Request, response: Response, db: AsyncSession = Depends(get_db)):
        settings = request.app.state.settings
        token = request.cookies.get(settings.SESSION_COOKIE_NAME)
        if token:
            await AuthService.destroy_session(db, token)
        response.delete_cookie(settings.SESSION_COOKIE_NAME)
        return {"detail": "Logged out"}

    @app.get("/api/auth/user", response_model=UserOut)
    async def current_user(user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
        row = await db.get(User, user.id)
        if row is None:
            raise HTTPException(status_code=401, detail="User not found")
        return row

    # ─── Repositories ────────────────────────────────────

    @app.post("/api/repos", response_model=RepositoryOut, status_code=201)
    async def create_repo(
        body: CreateRepoRequest,
        user: CurrentUser = Depends(get_current_user),
        storage: Storage = Depends(get_storage),
    ):
        try:
            owner, name = parse_repo_url(body.url)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return await storage.create_repository(
            user_id=user.id,
            url=body.url,
            owner=owner,
            name=name,
            default_branch="main",
        )

    @app.get("/api/repos", response_model=List[RepositoryOut])
    async def list_repos(
        user: CurrentUser = Depends(get_current_user),
        storage: Storage = Depends(get_storage),
    ):
        return await storage.list_repositories(user.id)

    @app.get("/api/repos/{repo_id}", response_model=RepositoryOut)
    async def get_repo(repo: Repository = Depends(get_owned_repo)):
        return repo

    @app.delete("/api/repos/{repo_id}", status_code=204)
    async def delete_repo(
        repo_id: int,
        user: CurrentUser = Depends(get_current_user),
        storage: Storage = Depends(get_storage),
    ):
        repo = await storage.get_repository(repo_id)
        if repo is None:
            raise HTTPException(status_code=404, detail="Repo not found")
        if repo.user_id != user.id:
            raise HTTPException(status_code=401, detail="Unauthorized")

        await storage.delete_repository(repo.id)
        return Response(status_code=204)

    # ─── Scans ───────────────────────────────────────────

    @app.post("/api/repos/{repo_id}/scan", response_model=ScanOut, status_code=201)
    async def start_scan(
        repo: Repository = Depends(get_owned_repo),
        scanner: ScannerService = Depends(get_scanner),
    ):
        scan = await scanner.start_scan(repo)
        if scan is None:
            raise HTTPException(status_code=409, detail="A scan is already processing for this repository")
        return scan

    @app.get("/api/repos/{repo_id}/scans", response_model=List[ScanOut])
    async def list_scans(
        repo: Repository = Depends(get_owned_repo),
        storage: Storage = Depends(get_storage),
    ):
        return await storage.list_scans(repo.id)

    async def _load_owned_scan(scan_id: int, user: CurrentUser, storage: Storage):
        scan = await storage.get_scan(scan_id)
        if scan is None:
            raise HTTPException(status_code=404, detail="Scan not found")
        repo = await storage.get_repository(scan.repo_id)
        if repo is None or repo.user_id != user.id:
            raise HTTPException(status_code=404, detail="Scan not found")
        return scan, repo

    @app.get("/api/scans/{scan_id}", response_model=ScanDetail)
    async def get_scan(
        scan_id: int,
        user: CurrentUser = Depends(get_current_user),
        storage: Storage = Depends(get_storage),
    ):
        scan, _ = await _load_owned_scan(scan_id, user, storage)
        files = await storage.list_file_analyses(scan.id)
        return ScanDetail(
            scan=ScanOut.model_validate(scan),
            files=[FileAnalysisOut.model_validate(f) for f in files],
        )

    @app.get("/api/scans/{scan_id}/export")
    async def export_scan(
        scan_id: int,
        user: CurrentUser = Depends(get_current_user),
        storage: Storage = Depends(get_storage),
    ):
        scan, repo = await _load_owned_scan(scan_id, user, storage)
        files = await storage.list_file_analyses(scan.id)
        try:
            html = render_scan_report(repo, scan, files)
        except Exception as e:
            logger.error(f"Export failed for scan {scan_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to generate report")

        return HTMLResponse(
            content=html,
            headers={"Content-Disposition": f'attachment; filename="{report_filename(repo, scan)}"'},
        )

    # ─── Stats ───────────────────────────────────────────

    @app.get("/api/stats", response_model=StatsOut)
    async def get_stats(
        user: CurrentUser = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ):
        return await StatsService.get_summary(db, user.id)


app = create_app()
