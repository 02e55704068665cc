import asyncio
import contextlib
import functools
import logging
from typing import Any, Awaitable, Callable

from databases import Database
from rich.logging import RichHandler
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

import config
from db import SQLiteCollection
from recipes.catalog import RecipeCatalog, RecipeList
from recipes.errors import InvalidQuery, RecipeNotFound, StorageError, ValidationError
from recipes.firestore import FirestoreCollection, firestore_client_factory
from recipes.models import Recipe, RecipeDraft
from recipes.search import RemoteSearchClient, search_client_factory
from recipes.store import DocumentCollection, RecipeStore


logger = logging.getLogger(__name__)


CONFIG = config.Config()


type Payload = dict[str, Any]


def aJSONResponse(route: Callable[..., Awaitable[Payload | tuple[Payload, int]]]):
    @functools.wraps(route)
    async def wrapper(*args: Any, **kwargs: Any) -> JSONResponse:
        resp = await route(*args, **kwargs)
        if not isinstance(resp, tuple):
            data, code = resp, 200
        else:
            data, code = resp
        return JSONResponse(data, status_code=code)

    return wrapper


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True)],
    )


def recipe_json(recipe: Recipe) -> Payload:
    return recipe.model_dump(mode="json")


def section(recipes: RecipeList) -> Payload:
    return {
        "recipes": [recipe_json(r) for r in recipes],
        "status": recipes.status.value,
    }


async def build_catalog(cfg: config.Config) -> tuple[RecipeCatalog, Database | None]:
    database = None
    collection: DocumentCollection
    match cfg.store_backend:
        case config.StoreBackend.firestore:
            client = firestore_client_factory(
                cfg.firebase_credentials, cfg.firebase_project_id
            )
            collection = FirestoreCollection(client=client, name=cfg.recipes_collection)
        case config.StoreBackend.sqlite:
            database = Database(cfg.db_url)
            await database.connect()
            sqlite_collection = SQLiteCollection(database, cfg.recipes_collection)
            await sqlite_collection.create_table()
            collection = sqlite_collection

    http_client = search_client_factory(
        base_url=cfg.spoonacular_base_url,
        api_key=cfg.spoonacular_api_key,
        timeout=cfg.http_timeout,
    )
    catalog = RecipeCatalog(
        search_client=RemoteSearchClient(http_client),
        store=RecipeStore(collection),
        trending_limit=cfg.trending_limit,
        latest_limit=cfg.latest_limit,
        search_limit=cfg.search_limit,
        category_limit=cfg.category_limit,
        list_ttl=cfg.list_ttl,
        detail_ttl=cfg.detail_ttl,
        rate_limit_backoff=cfg.rate_limit_backoff,
    )
    return catalog, database


async def _my_recipes(catalog: RecipeCatalog) -> RecipeList:
    # The home screen still renders when the store is down.
    try:
        return await catalog.my_recipes()
    except StorageError as e:
        logger.warning("Could not load the user's recipes: %s", e)
        return RecipeList(error=e)


@aJSONResponse
async def home(request: Request) -> Payload:
    catalog: RecipeCatalog = request.app.state.catalog
    trending, latest, mine = await asyncio.gather(
        catalog.trending(),
        catalog.latest(),
        _my_recipes(catalog),
    )
    return {
        "trending": section(trending),
        "latest": section(latest),
        "mine": section(mine),
    }


@aJSONResponse
async def favourites(request: Request) -> Payload:
    catalog: RecipeCatalog = request.app.state.catalog
    categories: list[str] = request.app.state.categories
    feeds = await asyncio.gather(*(catalog.category(name) for name in categories))
    return {name: section(feed) for name, feed in zip(categories, feeds)}


async def search(request: Request) -> Payload | tuple[Payload, int]:
    catalog: RecipeCatalog = request.app.state.catalog
    query = request.query_params.get("q", "")
    try:
        n = int(request.query_params["n"]) if "n" in request.query_params else None
    except ValueError:
        return {"error": "n must be an integer."}, 400
    try:
        results = await catalog.search_by_keyword(query, n)
    except InvalidQuery as e:
        return {"error": str(e)}, 400
    return {"query": query, **section(results)}


async def create(request: Request) -> Payload | tuple[Payload, int]:
    catalog: RecipeCatalog = request.app.state.catalog
    try:
        draft = RecipeDraft.model_validate(await request.json())
    except ValueError as e:
        # Covers malformed JSON as well as pydantic errors.
        return {"error": f"Invalid recipe: {e}"}, 400
    try:
        id = await catalog.add_recipe(draft)
    except ValidationError as e:
        return {"error": str(e), "fields": e.fields}, 422
    except StorageError as e:
        logger.error("Saving recipe failed: %s", e)
        return {"error": "Failed to save recipe."}, 503
    return {"id": id}, 201


@aJSONResponse
async def recipes(request: Request) -> Payload | tuple[Payload, int]:
    match request.method.lower():
        case "get":
            return await search(request)
        case "post":
            return await create(request)
        case _:
            raise ValueError("Unsupported method.")


@aJSONResponse
async def recipe_detail(request: Request) -> Payload | tuple[Payload, int]:
    id = request.path_params["id"]
    catalog: RecipeCatalog = request.app.state.catalog
    try:
        recipe = await catalog.get_detail(id)
    except RecipeNotFound:
        return {"error": f"No recipe {id}."}, 404
    except StorageError as e:
        logger.error("Fetching recipe %s failed: %s", id, e)
        return {"error": "Failed to fetch recipe."}, 503
    return recipe_json(recipe)


def create_app(
    catalog: RecipeCatalog | None = None,
    cfg: config.Config = CONFIG,
) -> Starlette:
    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        configure_logging(cfg.log_level)
        database = None
        if catalog is None:
            app.state.catalog, database = await build_catalog(cfg)
        else:
            app.state.catalog = catalog
        app.state.categories = cfg.favourite_categories
        yield
        await app.state.catalog.search_client.close()
        if database is not None:
            await database.disconnect()

    return Starlette(
        debug=True if cfg.env == config.Env.local else False,
        routes=[
            Route("/", home),
            Route("/favourites", favourites),
            Route("/recipes/", recipes, methods=["GET", "POST"]),
            Route("/recipes/{id:str}", recipe_detail),
        ],
        lifespan=lifespan,
    )


app = create_app()
