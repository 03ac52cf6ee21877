from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
import os

app = FastAPI(title="Mock Advice Model Server", version="1.0.0")
# Set MOCK_MODEL_STATUS=503 to simulate an outage
FORCED_STATUS = int(os.environ.get("MOCK_MODEL_STATUS", "0"))

CANNED_ADVICE = {
    "user's budget": "1. Track fixed costs monthly.\n2. Move 20% of income to savings on payday.",
    "investment recommendations": "1. Keep six months of expenses liquid.\n2. Diversify with low-cost index funds.",
    "debt situation": "1. Pay the highest-interest balance first.\n2. Keep minimum payments current on the rest.",
    "credit situation": "1. Keep each card under 30% utilization.\n2. Pay statements in full before the due date.",
}
DEFAULT_ADVICE = "1. Build an emergency fund.\n2. Reduce high-interest debt.\n3. Invest consistently."

@app.get("/health")
def health(): return {"status": "ok"}

@app.post("/model/{model_id}/invoke")
async def invoke(model_id: str, request: Request):
    if FORCED_STATUS:
        raise HTTPException(status_code=FORCED_STATUS, detail="forced failure")
    body = await request.json()
    try:
        prompt = body["messages"][0]["content"]
    except (KeyError, IndexError, TypeError):
        raise HTTPException(status_code=400, detail="messages required")
    lowered = prompt.lower()
    text = next((advice for key, advice in CANNED_ADVICE.items() if key in lowered), DEFAULT_ADVICE)
    return JSONResponse(content={
        "id": f"mock-{model_id}",
        "type": "message",
        "role": "assistant",
        "content": [{"type": "text", "text": text}],
        "usage": {"input_tokens": len(prompt) // 4, "output_tokens": len(text) // 4},
    })
