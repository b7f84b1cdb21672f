from __future__ import annotations

from ctxscan.models import RepoInfo, SharedType
from ctxscan.passes import TypeExtractionPass
from tests._fixtures.passes import apply_pass
from tests._fixtures.workspace_builder import WorkspaceBuilder


def _repo(builder: WorkspaceBuilder, name: str, language: str = "typescript") -> RepoInfo:
    return RepoInfo(name=name, path=str(builder.path() / name), language=language)


def test_exported_types_used_elsewhere_are_shared(workspace_builder: WorkspaceBuilder) -> None:
    workspace_builder.write(
        {
            "shared/src/types.ts": """
                export interface User { id: string }
                export type OrderId = string;
                export enum Role { Admin, Member }
                export class Money {}
                export interface Unused { x: number }
                """,
            "web/src/profile.tsx": "import { User, Role } from '@acme/shared';\nconst u: User = load();\n",
            "admin/src/index.js": "// Users and Roles\nconst role = Role.Admin;\nconst price = new Money();\n",
            "ops/main.go": "type User struct{}\n",
        }
    )
    ctx = workspace_builder.context(mode="multi-repo")
    ctx.repos.extend(
        [
            _repo(workspace_builder, "shared"),
            _repo(workspace_builder, "web"),
            _repo(workspace_builder, "admin", "javascript"),
            _repo(workspace_builder, "ops", "go"),
        ]
    )

    apply_pass(TypeExtractionPass(), ctx)

    assert ctx.shared_types == [
        SharedType(name="Money", kind="class", defined_in="shared", file="src/types.ts", used_by=["admin"]),
        SharedType(name="Role", kind="enum", defined_in="shared", file="src/types.ts", used_by=["admin", "web"]),
        SharedType(name="User", kind="interface", defined_in="shared", file="src/types.ts", used_by=["web"]),
    ]


def test_types_are_only_read_from_typescript_files(workspace_builder: WorkspaceBuilder) -> None:
    workspace_builder.write(
        {
            "a/index.js": "export class Widget {}\n",
            "b/index.ts": "new Widget();\n",
        }
    )
    ctx = workspace_builder.context(mode="multi-repo")
    ctx.repos.extend([_repo(workspace_builder, "a", "javascript"), _repo(workspace_builder, "b")])

    apply_pass(TypeExtractionPass(), ctx)

    assert ctx.shared_types == []
