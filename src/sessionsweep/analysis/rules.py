"""Rule tables for heuristic tagging, language hints and junk titles.

Each table is evaluated top-to-bottom by its consumer. All rules are
heuristic-based — no statistical models.
"""

from __future__ import annotations

import re

# File extension → tag, applied to every unique path a session's tools touched.
EXTENSION_TAGS: dict[str, str] = {
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".rs": "rust",
    ".go": "go",
    ".rb": "ruby",
    ".java": "java",
    ".kt": "kotlin",
    ".swift": "swift",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".html": "html",
    ".css": "css",
    ".scss": "css",
    ".json": "config",
    ".yaml": "config",
    ".yml": "config",
    ".toml": "config",
    ".md": "docs",
    ".mdx": "docs",
    ".sql": "database",
    ".prisma": "database",
    ".sh": "shell",
    ".bash": "shell",
    ".zsh": "shell",
    ".dockerfile": "docker",
    ".docker": "docker",
    ".vue": "vue",
    ".svelte": "svelte",
    ".astro": "astro",
}

# Tool name → tag, applied once per tool invocation.
TOOL_TAGS: dict[str, str] = {
    "WebFetch": "web",
    "WebSearch": "web",
    "Bash": "cli",
    "Read": "files",
    "Write": "files",
    "Edit": "files",
    "Glob": "files",
    "Grep": "search",
    "NotebookEdit": "jupyter",
    "Task": "agents",
}

# Keyword pattern → tag, applied once per session against all user text.
KEYWORD_TAGS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\b(test|spec|pytest|jest|mocha|vitest)\b", re.I), "testing"),
    (re.compile(r"\b(bug|fix|error|issue|debug)\b", re.I), "bugfix"),
    (re.compile(r"\b(refactor|clean|restructur)", re.I), "refactor"),
    (re.compile(r"\b(deploy|ci|cd|pipeline|github.actions)\b", re.I), "devops"),
    (re.compile(r"\b(docker|container|kubernetes|k8s)\b", re.I), "docker"),
    (re.compile(r"\b(api|endpoint|route|rest|graphql)\b", re.I), "api"),
    (re.compile(r"\b(database|db|sql|mongo|postgres|redis)\b", re.I), "database"),
    (re.compile(r"\b(auth|login|oauth|jwt|session)\b", re.I), "auth"),
    (re.compile(r"\b(style|css|design|ui|ux|layout|theme)\b", re.I), "ui"),
    (re.compile(r"\b(react|next|vue|svelte|angular)\b", re.I), "frontend"),
    (re.compile(r"\b(node|express|fastify|koa|flask|django)\b", re.I), "backend"),
    (re.compile(r"\b(git|commit|branch|merge|rebase)\b", re.I), "git"),
]

# Candidate language → common-word pattern. English is the default and has no entry.
LANGUAGE_HINTS: dict[str, re.Pattern[str]] = {
    "fr": re.compile(
        r"\b(je|tu|il|nous|vous|les|des|une|est|sont|dans|pour|avec|que|sur|pas"
        r"|fait|faire|peut|cette|mais|aussi|comme|bien|tout|très|plus|moins|ici"
        r"|merci|bonjour|salut|oui|non|voici|voilà|ajoute|modifie|supprime"
        r"|corrige|fais|mets|change|crée|regarde)\b",
        re.I,
    ),
    "es": re.compile(
        r"\b(el|la|los|las|es|son|en|para|con|que|por|pero|como|bien|todo|más"
        r"|menos|aquí|gracias|hola|sí|añade|modifica|crea|mira)\b",
        re.I,
    ),
    "de": re.compile(
        r"\b(der|die|das|ein|eine|ist|sind|in|für|mit|und|aber|wie|gut|alles"
        r"|mehr|weniger|hier|danke|hallo|ja|nein)\b",
        re.I,
    ),
}

DEFAULT_LANGUAGE = "en"
LANGUAGE_MIN_MATCHES = 3
LANGUAGE_MIN_TEXT = 20

# First-message patterns that mark a session as throwaway.
JUNK_TITLE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"^/?init$", re.I),
    re.compile(r"^exit$", re.I),
    re.compile(r"^ls$", re.I),
    re.compile(r"^pwd$", re.I),
    re.compile(r"^q$", re.I),
    re.compile(r"^quit$", re.I),
    re.compile(r"^/?(help|h)$", re.I),
    re.compile(r"^--continue$", re.I),
    re.compile(r"^--resume$", re.I),
    re.compile(r"^\s*$"),
    re.compile(r"^\.$"),
    re.compile(r"^test$", re.I),
]

# Tool input keys that carry a filesystem path.
PATH_INPUT_KEYS = ("file_path", "path", "notebook_path")
