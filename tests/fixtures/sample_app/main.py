from fastapi import FastAPI

from routers import categories, posts, users

app = FastAPI(title="Sample")

app.include_router(users.router)
app.include_router(categories.router, prefix="/categories", tags=["categories"])
app.include_router(posts.router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
