import os


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ['true', 'on', '1']


class Config:
    # Default variable for compute_higher_order, the CLI and the API
    VARIABLE = os.environ.get('DERIVSOLVER_VARIABLE') or 'x'
    # Insert '*' for "2x", "3(x+1)", "(x+1)(x-1)" in free-form input
    IMPLICIT_MULTIPLICATION = _env_flag('DERIVSOLVER_IMPLICIT_MULTIPLICATION', 'true')
    # Decimal places for non-integer constants in formatted output
    PRECISION = int(os.environ.get('DERIVSOLVER_PRECISION', 4))

    # SymPy cross-check of every computed derivative
    VERIFY = _env_flag('DERIVSOLVER_VERIFY', 'false')
    VERIFY_SAMPLES = int(os.environ.get('DERIVSOLVER_VERIFY_SAMPLES', 7))
    VERIFY_TOLERANCE = float(os.environ.get('DERIVSOLVER_VERIFY_TOLERANCE', 1e-6))

    # Largest integer exponent Simplifier.expand turns into a product
    MAX_EXPAND_POWER = int(os.environ.get('DERIVSOLVER_MAX_EXPAND_POWER', 5))

    LOG_LEVEL = os.environ.get('DERIVSOLVER_LOG_LEVEL', 'WARNING').upper()
