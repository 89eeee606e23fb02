from __future__ import annotations

import textwrap

import pytest

from readme2ci.markdown import MarkdownAST, parse_markdown

SPEC_README = textwrap.dedent(
    """\
    # Sample App

    ## Installation

    ```
    npm install
    ```

    ## Development

    ```
    npm run dev
    npm test
    ```
    """
)

POLYGLOT_README = textwrap.dedent(
    """\
    # Widget Forge

    > Forge widgets from a Python backend and a React frontend.

    ## Backend

    The backend is written in Python and uses Flask.

    ```bash
    $ pip install -r requirements.txt
    python -m pip install flask
    make
    pytest
    ```

    ## Frontend

    ```bash
    npm install
    npm run build
    npm test
    ```

    ## Deployment

    ```
    docker build -t widget-forge .
    ./deploy.sh
    ```
    """
)


@pytest.fixture
def spec_readme() -> str:
    return SPEC_README


@pytest.fixture
def polyglot_readme() -> str:
    return POLYGLOT_README


@pytest.fixture
def polyglot_ast() -> MarkdownAST:
    return parse_markdown(POLYGLOT_README)
