CONFIG_DIR_NAME = ".todo_runner"
CONFIG_FILE = "config.yaml"
CONFIG_CANDIDATES = (
    f"{CONFIG_DIR_NAME}/{CONFIG_FILE}",
    "gui-patterns.json",
    ".cursor/gui-patterns.json",
    "config/gui-patterns.json",
)

DEFAULT_TODO_DIR = "docs/TODO"
LAYOUT_SCHEMA_VERSION = 1

ACTIVE_DIR = "active"
COMPLETED_DIR = "completed"
STEPS_DIR = "steps"
PHASES_DIR = "phases"
SUMMARIES_DIR = "summaries"
RUNNER_DIR = "runner"
ACTION_REQUIRED_DIR = "action_required"

NEXT_FILE = "NEXT.md"
PROMPT_FILE = "RUNNER_PROMPT.txt"
SUMMARY_PROMPT_FILE = "RUNNER_SUMMARY_PROMPT.txt"

MARKDOWN_SUFFIX = ".md"
RESOLVED_MARKER_PREFIX = "resolved_"

EXECUTE_STEP_PROMPT = "04-execute-single-step.prompt"
EXECUTION_SUMMARY_PROMPT = "04-execution-summary.prompt"
FRAGMENTS_DIR = "fragments"
USER_FRAGMENTS_DIR = "user"

STEP_FILE_PLACEHOLDER = "@StepFile"
OUTPUT_PLACEHOLDER = "@OutputInstruction"
MANUAL_TEST_PLACEHOLDER = "@ManualTestInstruction"

OUTPUT_FRAGMENT_DEFAULT = "output-step-only.txt"
OUTPUT_FRAGMENT_QUIET = "output-zero.txt"
MANUAL_FRAGMENT_BLOCK = "manual-block.txt"
MANUAL_FRAGMENT_SKIP = "manual-skip.txt"

SUMMARY_STEP_EXCERPT_CHARS = 1200

DEFAULT_AGENT_COMMAND = "agent -p --force --model {model} --output-format stream-json {prompt}"
DEFAULT_MODEL = "auto"

DEFAULT_MODEL_RECOMMENDATIONS = {
    "compound": "claude-4.5-sonnet",
    "simple": "claude-4.5-sonnet",
}

GUI_PRESETS: dict[str, list[str]] = {
    "flutter": [
        r"lib/.*(widgets?|screens?|pages?|views?)/",
        r"\.dart\b.*\b(Widget|Scaffold|build\()",
    ],
    "react": [
        r"src/(components|pages|views)/",
        r"\.(tsx|jsx)\b",
    ],
    "vue": [
        r"\.vue\b",
        r"src/(components|views)/",
    ],
    "web": [
        r"\.(css|scss|sass|less|html)\b",
        r"\btemplates?/",
    ],
    "android": [
        r"res/layout/",
        r"@Composable",
    ],
}

GUI_COMPOUND_NOTE = (
    "> **GUI Compound Step:** This step groups multiple UI components. "
    "Use a capable model and expect 2-3 hours."
)
GUI_SIMPLE_NOTE = (
    "> **GUI Step:** This step modifies UI/presentation code. "
    "Using a capable model for better visual reasoning."
)
