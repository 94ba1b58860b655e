import textwrap
from pathlib import Path

import pytest
import yaml

from contrail.contract.builder import build_registry


CONTRACT_YAML = textwrap.dedent(
    """
    openapi: 3.0.0
    info:
      title: Shop
      version: "1.0"
    paths:
      /auth/register:
        post:
          summary: User registration
          requestBody:
            content:
              application/json:
                schema:
                  $ref: '#/components/schemas/RegisterRequest'
          responses:
            '201':
              description: created
              content:
                application/json:
                  schema:
                    $ref: '#/components/schemas/AuthResponse'
            '400':
              description: invalid
            '409':
              description: exists
      /auth/login:
        post:
          summary: User login
          requestBody:
            content:
              application/json:
                schema:
                  type: object
                  properties:
                    email: {type: string, format: email}
                    password: {type: string}
          responses:
            '200':
              description: ok
              content:
                application/json:
                  schema:
                    $ref: '#/components/schemas/AuthResponse'
            '401':
              description: bad credentials
      /api/profile:
        get:
          summary: Get user profile
          security:
            - bearerAuth: []
          responses:
            '200':
              description: ok
            '404':
              description: missing
        put:
          summary: Update user profile
          security:
            - bearerAuth: []
          requestBody:
            content:
              application/json:
                schema:
                  type: object
                  properties:
                    first_name: {type: string}
                    last_name: {type: string}
          responses:
            '200':
              description: ok
      /api/products:
        get:
          summary: Get all products
          responses:
            '200':
              description: ok
            '500':
              description: boom
      /api/products/{id}:
        get:
          summary: Get product by ID
          parameters:
            - name: id
              in: path
              required: true
              schema: {type: integer}
          responses:
            '200':
              description: ok
            '404':
              description: missing
      /api/orders:
        get:
          summary: Get user orders
          security:
            - bearerAuth: []
          responses:
            '200':
              description: ok
        post:
          summary: Create new order
          security:
            - bearerAuth: []
          requestBody:
            content:
              application/json:
                schema:
                  type: object
                  properties:
                    total: {type: number}
          responses:
            '201':
              description: created
            '400':
              description: invalid
      /api/orders/{id}:
        delete:
          summary: Cancel order
          security:
            - bearerAuth: []
          responses:
            '200':
              description: ok
            '400':
              description: cannot cancel
            '404':
              description: missing
      /public:
        get:
          security:
            - {}
          responses:
            '200':
              description: ok
    components:
      securitySchemes:
        bearerAuth:
          type: http
          scheme: bearer
          bearerFormat: JWT
      schemas:
        RegisterRequest:
          type: object
          properties:
            email: {type: string, format: email}
            password: {type: string}
            first_name: {type: string}
            last_name: {type: string}
        AuthResponse:
          type: object
          properties:
            token: {type: string}
            user:
              $ref: '#/components/schemas/User'
        User:
          type: object
          properties:
            id: {type: integer}
            email: {type: string}
    """
)


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(s, encoding="utf-8")


@pytest.fixture
def contract_doc() -> dict:
    return yaml.safe_load(CONTRACT_YAML)


@pytest.fixture
def contract_file(tmp_path: Path) -> Path:
    p = tmp_path / "schemas" / "api-schema.yaml"
    write(p, CONTRACT_YAML)
    return p


@pytest.fixture
def registry(contract_doc):
    return build_registry(contract_doc)
