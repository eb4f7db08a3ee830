import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]

SUITES = {
    "domain": "tests/ordering/domain/",
    "application": "tests/ordering/application/",
    "integration": "tests/ordering/integration/",
    "bdd": "tests/ordering/bdd/",
}


def _install(session: nox.Session) -> None:
    """Install the service and its test group into the session's virtualenv."""
    session.run("poetry", "install", "--with", "test", external=True)


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run every suite."""
    _install(session)
    session.run("pytest", *session.posargs)


@nox.session(python=PYTHON_VERSIONS[-1])
@nox.parametrize("suite", list(SUITES))
def suite(session: nox.Session, suite: str) -> None:
    """Run one suite, e.g. ``nox -s "suite(suite='bdd')"``."""
    _install(session)
    session.run("pytest", SUITES[suite], *session.posargs)
