"""Canonical skill labels with synonyms and match patterns.

Labels here win over whatever casing an extractor or editor produced.
Synonyms are matched case-insensitively against the whole tag; patterns are
anchored regular expressions tried after synonyms.
"""

SKILL_TAXONOMY = [
    {
        "canonical_skill": "JavaScript",
        "synonyms": ["js", "javascript"],
        "patterns": [r"^javascript$"],
    },
    {
        "canonical_skill": "TypeScript",
        "synonyms": ["ts", "typescript"],
        "patterns": [r"^typescript$"],
    },
    {
        "canonical_skill": "Python",
        "synonyms": ["python"],
    },
    {
        "canonical_skill": "Ruby",
        "synonyms": ["ruby"],
    },
    {
        "canonical_skill": "Go",
        "synonyms": ["go"],
    },
    {
        "canonical_skill": "Java",
        "synonyms": ["java"],
    },
    {
        "canonical_skill": "React",
        "synonyms": ["react.js", "reactjs"],
        "patterns": [r"^react(\.js|js)?$"],
    },
    {
        "canonical_skill": "Next.js",
        "synonyms": ["next", "nextjs"],
        "patterns": [r"^next(\.js|js)?$"],
    },
    {
        "canonical_skill": "Node.js",
        "synonyms": ["node", "nodejs"],
        "patterns": [r"^node(\.js|js)?$"],
    },
    {
        "canonical_skill": "Django",
        "synonyms": ["django"],
    },
    {
        "canonical_skill": "Flask",
        "synonyms": ["flask"],
    },
    {
        "canonical_skill": "Rails",
        "synonyms": ["ruby on rails"],
    },
    {
        "canonical_skill": "Postgres",
        "synonyms": ["postgresql"],
        "patterns": [r"^postgresql$"],
    },
    {
        "canonical_skill": "MySQL",
        "synonyms": ["mysql"],
    },
    {
        "canonical_skill": "MongoDB",
        "synonyms": ["mongodb"],
    },
    {
        "canonical_skill": "AWS",
        "synonyms": ["aws"],
    },
    {
        "canonical_skill": "Docker",
        "synonyms": ["docker"],
    },
    {
        "canonical_skill": "Kubernetes",
        "synonyms": ["kubernetes"],
    },
    {
        "canonical_skill": "Tailwind CSS",
        "synonyms": ["tailwind"],
        "patterns": [r"^tailwind(\s*css)?$"],
    },
]
