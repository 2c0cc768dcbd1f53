from fastapi import FastAPI

from newsdesk.api.messages import router as messages_router

app = FastAPI(title="Newsdesk Messaging API", version="0.1.0")

app.include_router(messages_router)


@app.get("/health")
def health():
    return {"status": "ok"}
