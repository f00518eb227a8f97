import pytest
from fastapi.testclient import TestClient

from backend.app.main import app
import main as entry

client = TestClient(app)


def test_differentiate_endpoint_returns_steps_and_answer() -> None:
    response = client.post("/api/differentiate", json={"expression": "x * sin(x)"})
    assert response.status_code == 200
    body = response.json()
    assert body["final_answer"] == "sin(x) + x × cos(x)"
    assert body["variable"] == "x" and body["order"] == 1
    assert [s["step_type"] for s in body["steps"]] == ["IDENTIFY", "APPLY_RULE", "RESULT"]
    assert body["steps"][1]["rule"] == "Product Rule"
    assert len(body["steps"][1]["sub_steps"]) == 2
    assert body["summary"]["total_steps"] == 3


def test_differentiate_endpoint_higher_order_and_style() -> None:
    response = client.post("/api/differentiate",
                           json={"expression": "x^3", "order": 2, "style": "latex"})
    assert response.status_code == 200
    assert response.json()["final_answer"] == "6x"


def test_differentiate_endpoint_with_verification() -> None:
    response = client.post("/api/differentiate", json={"expression": "ln(x)", "verify": True})
    assert response.status_code == 200
    assert response.json()["verification_steps"]


@pytest.mark.parametrize(
    "payload",
    [
        {"expression": "   "},
        {"expression": "x + "},
        {"expression": "x * ln(x^2)"},
        {"expression": "x^2", "style": "rtf"},
    ],
)
def test_differentiate_endpoint_rejects_bad_input(payload: dict) -> None:
    response = client.post("/api/differentiate", json=payload)
    assert response.status_code == 400
    assert response.json()["detail"]


def test_differentiate_endpoint_validates_order() -> None:
    response = client.post("/api/differentiate", json={"expression": "x^2", "order": 0})
    assert response.status_code == 422


def test_validate_endpoint() -> None:
    assert client.post("/api/validate", json={"expression": "x^2"}).json() == \
        {"valid": True, "error": None}
    invalid = client.post("/api/validate", json={"expression": "x +"}).json()
    assert invalid["valid"] is False
    assert "Unexpected token" in invalid["error"]


def test_operations_endpoint() -> None:
    body = client.get("/api/operations").json()
    assert body == {"engine": "DerivativeEngine",
                    "operations": ["derivative", "differentiate", "d/dx"]}


def test_main_prints_steps_and_result(capsys) -> None:
    assert entry.main(["x^2 + 3x"]) == 0
    out = capsys.readouterr().out
    assert "1. Differentiate f = x² + 3x" in out
    assert "[Sum Rule]" in out
    assert "f' = 2x + 3" in out


def test_main_styles_and_verification(capsys) -> None:
    assert entry.main(["1/x", "--style", "latex", "--verify"]) == 0
    out = capsys.readouterr().out
    assert r"f' = \frac{-1}{x^{2}}" in out
    assert "verification: pass" in out


def test_main_higher_order(capsys) -> None:
    assert entry.main(["x^3", "--order", "3"]) == 0
    assert "f' = 6" in capsys.readouterr().out


def test_main_reports_errors(capsys) -> None:
    assert entry.main(["x + "]) == 1
    assert "error:" in capsys.readouterr().err


def test_main_saves_a_plot(tmp_path, capsys) -> None:
    target = tmp_path / "sin.png"
    assert entry.main(["sin(x)", "--plot", str(target)]) == 0
    assert target.exists() and target.stat().st_size > 0
    assert f"graph saved to {target}" in capsys.readouterr().out


def test_main_skips_plot_for_other_variables(tmp_path, capsys) -> None:
    target = tmp_path / "none.png"
    assert entry.main(["x * y", "--var", "y", "--plot", str(target)]) == 0
    assert not target.exists()
    assert "nothing to plot" in capsys.readouterr().err
