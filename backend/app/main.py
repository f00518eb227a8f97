import logging

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from derivative.config import Config
from derivative.engine import DerivativeEngine
from derivative.formatter import FormatStyle, MathFormatter

logger = logging.getLogger(__name__)

app = FastAPI(title="DerivSolver API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class DifferentiateRequest(BaseModel):
    expression: str
    variable: str = Config.VARIABLE
    order: int = Field(default=1, ge=1, le=10)
    style: str = "text"
    verify: bool = False


class ValidateRequest(BaseModel):
    expression: str


class StepInfo(BaseModel):
    step_number: int
    step_type: str
    rule: str | None = None
    template_key: str
    params: dict[str, str]
    before: str
    after: str
    level: int = 0
    note: str | None = None
    sub_steps: list["StepInfo"] = []


StepInfo.model_rebuild()


class DifferentiateResponse(BaseModel):
    expression: str
    variable: str
    order: int
    steps: list[StepInfo]
    final_answer: str
    verification_steps: list[dict]
    summary: dict


class ValidateResponse(BaseModel):
    valid: bool
    error: str | None = None


@app.post("/api/differentiate", response_model=DifferentiateResponse)
def differentiate(req: DifferentiateRequest):
    expression = req.expression.strip()
    if not expression:
        raise HTTPException(status_code=400, detail="Expression cannot be empty.")
    try:
        style = FormatStyle.from_string(req.style)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    # one engine per request, the step tracker is not shared
    engine = DerivativeEngine(formatter=MathFormatter(), verify=req.verify)
    result = engine.compute_higher_order(expression, req.variable, req.order)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error_message)

    body = result.to_dict(engine.formatter)
    final_answer = engine.formatter.format(result.result, style)
    logger.info("differentiated %r in %.2f ms", expression, result.computation_time_ms)
    return {
        "expression": expression,
        "variable": req.variable,
        "order": req.order,
        "steps": body["steps"],
        "final_answer": final_answer,
        "verification_steps": body["verification_steps"],
        "summary": body["summary"],
    }


@app.post("/api/validate", response_model=ValidateResponse)
def validate(req: ValidateRequest):
    error = DerivativeEngine().validate_input(req.expression)
    return {"valid": error is None, "error": error}


@app.get("/api/operations")
def operations():
    engine = DerivativeEngine()
    return {"engine": engine.engine_name,
            "operations": engine.get_supported_operations()}
