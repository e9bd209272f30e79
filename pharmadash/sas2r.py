"""
Rule-based translation of SAS programs into dplyr-style R.

This is regex rewriting that produces a first draft for a migration, not a SAS
parser. Statements ending in ``;`` are rewritten one line at a time (DATA, SET,
IF/ELSE, WHERE, KEEP, DROP, BY, the common PROCs and assignments). Function
calls, comparison/logical operators and ``.`` missing values are then rewritten.
String literals and ``/* */`` comments are left untouched; comments come out as
``#`` lines. Unrecognised statements pass through unchanged.
"""

import re
from typing import Callable, List, Tuple, Union


Replacement = Union[str, Callable[["re.Match[str]"], str]]

_FLAGS = re.IGNORECASE | re.MULTILINE

# One argument, allowing a single level of nested parentheses.
_ARG = r"((?:[^(),]|\([^()]*\))+)"
# Whole argument list (commas allowed).
_ARGS = r"((?:[^()]|\([^()]*\))+)"

_PROTECTED = re.compile(r"/\*.*?\*/|\"[^\"\n]*\"|'[^'\n]*'", re.DOTALL)
_PLACEHOLDER = re.compile(r"\x00(\d+)\x00")

SAS_EXAMPLE = """/* Adult male subset with BMI */
DATA analysis_data;
    SET raw_data;
    WHERE age GE 18 AND sex = "M";
    IF age < 30 THEN age_category = "Young"; ELSE age_category = "Older";
    IF weight = . THEN weight_flag = 1;
    bmi = ROUND(weight / (height * height) * 703, 1);
    KEEP subject_id age bmi age_category;
RUN;

PROC SORT DATA=analysis_data OUT=sorted_data;
    BY age_category;
RUN;

PROC MEANS DATA=sorted_data MEAN STD;
    BY age_category;
RUN;
"""


def _args(text: str) -> str:
    return ", ".join(text.split())


def _condition(text: str) -> str:
    text = text.strip()
    text = re.sub(r"(\w+)\s*(?:\^=|~=|\bNE\b)\s*\.(?![\w.])", r"!is.na(\1)", text, flags=re.IGNORECASE)
    text = re.sub(r"(\w+)\s*(?:=|\bEQ\b)\s*\.(?![\w.])", r"is.na(\1)", text, flags=re.IGNORECASE)
    text = re.sub(r"\^=|~=", "!=", text)
    # SAS compares with a single "="
    return re.sub(r"(?<![<>!=^~])=(?!=)", "==", text)


def _assign(stmt: str) -> str:
    m = re.match(r"^\s*(\w+)\s*=\s*(.+?)\s*$", stmt)
    return f"{m.group(1)} <- {m.group(2)}" if m else stmt.strip()


def _if_else(m: "re.Match[str]") -> str:
    indent, cond, then, other = m.groups()
    return f"{indent}if ({_condition(cond)}) {{ {_assign(then)} }} else {{ {_assign(other)} }}"


def _if(m: "re.Match[str]") -> str:
    indent, cond, then = m.groups()
    return f"{indent}if ({_condition(cond)}) {{ {_assign(then)} }}"


def _else_if(m: "re.Match[str]") -> str:
    indent, cond, then = m.groups()
    return f"{indent}else if ({_condition(cond)}) {{ {_assign(then)} }}"


def _drop(m: "re.Match[str]") -> str:
    return f"{m.group(1)}select({', '.join('-' + v for v in m.group(2).split())})"


_STATEMENTS: List[Tuple[str, Replacement]] = [
    (r"^(\s*)PROC\s+SORT\s+DATA\s*=\s*(\w+)\s+OUT\s*=\s*(\w+)[^;\n]*;", r"\1\3 <- \2 %>% arrange()"),
    (r"^(\s*)PROC\s+SORT\s+DATA\s*=\s*(\w+)[^;\n]*;", r"\1\2 <- \2 %>% arrange()"),
    (r"^(\s*)PROC\s+MEANS\s+DATA\s*=\s*(\w+)[^;\n]*;", r"\1\2 %>% summarise()"),
    (r"^(\s*)PROC\s+FREQ\s+DATA\s*=\s*(\w+)[^;\n]*;", r"\1\2 %>% count()"),
    (r"^(\s*)PROC\s+PRINT\s+DATA\s*=\s*(\w+)[^;\n]*;", r"\1print(\2)"),
    (r"^(\s*)PROC\s+CONTENTS\s+DATA\s*=\s*(\w+)[^;\n]*;", r"\1str(\2)"),
    (r"^(\s*)DATA\s+(\w+)[^;\n]*;", r"\1\2 <- data.frame()"),
    (r"^(\s*)SET\s+(\w+)[^;\n]*;", r'\1\2 <- read_sas("\2.sas7bdat")'),
    (r"^[ \t]*(?:RUN|QUIT)[ \t]*;[ \t]*(?:\n|$)", ""),
    (r"^(\s*)IF\s+(.+?)\s+THEN\s+([^;\n]+);[ \t]*ELSE\s+([^;\n]+);", _if_else),
    (r"^(\s*)IF\s+(.+?)\s+THEN\s+([^;\n]+);", _if),
    (r"^(\s*)ELSE\s+IF\s+(.+?)\s+THEN\s+([^;\n]+);", _else_if),
    (r"^(\s*)ELSE\s+([^;\n]+);", lambda m: f"{m.group(1)}else {{ {_assign(m.group(2))} }}"),
    (r"^(\s*)WHERE\s+([^;\n]+);", lambda m: f"{m.group(1)}filter({_condition(m.group(2))})"),
    (r"^(\s*)KEEP\s+([^;\n]+);", lambda m: f"{m.group(1)}select({_args(m.group(2))})"),
    (r"^(\s*)DROP\s+([^;\n]+);", _drop),
    (r"^(\s*)BY\s+([^;\n]+);", lambda m: f"{m.group(1)}group_by({_args(m.group(2))})"),
    (r"^(\s*)(\w+)\s*=\s*([^;\n]+);", r"\1\2 <- \3"),
]

_FUNCTIONS: List[Tuple[str, Replacement]] = [
    (rf"\bMEAN\({_ARGS}\)", r"mean(\1, na.rm = TRUE)"),
    (rf"\bSTD\({_ARGS}\)", r"sd(\1, na.rm = TRUE)"),
    (rf"\bSUM\({_ARGS}\)", r"sum(\1, na.rm = TRUE)"),
    (rf"\bMIN\({_ARGS}\)", r"min(\1, na.rm = TRUE)"),
    (rf"\bMAX\({_ARGS}\)", r"max(\1, na.rm = TRUE)"),
    (rf"\bSUBSTR\({_ARG},{_ARG},{_ARG}\)",
     lambda m: f"substr({m.group(1).strip()}, {m.group(2).strip()}, {m.group(3).strip()})"),
    (rf"\bUPCASE\({_ARGS}\)", r"toupper(\1)"),
    (rf"\bLOWCASE\({_ARGS}\)", r"tolower(\1)"),
    (rf"\bTRIM\({_ARGS}\)", r"trimws(\1)"),
    (rf"\bLENGTH\({_ARGS}\)", r"nchar(\1)"),
    (rf"\bCOMPRESS\({_ARGS}\)", r"gsub('[[:space:]]+', '', \1)"),
    (r"\b(?:TODAY|DATE)\(\)", "Sys.Date()"),
    (rf"\bYEAR\({_ARGS}\)", r"year(\1)"),
    (rf"\bMONTH\({_ARGS}\)", r"month(\1)"),
    (rf"\bDAY\({_ARGS}\)", r"day(\1)"),
    (rf"\bSQRT\({_ARGS}\)", r"sqrt(\1)"),
    (rf"\bLOG\({_ARGS}\)", r"log(\1)"),
    (rf"\bEXP\({_ARGS}\)", r"exp(\1)"),
    (rf"\bABS\({_ARGS}\)", r"abs(\1)"),
    (rf"\bINT\({_ARGS}\)", r"as.integer(\1)"),
    (rf"\bROUND\({_ARG},{_ARG}\)", lambda m: f"round({m.group(1).strip()}, {m.group(2).strip()})"),
    (rf"\bMISSING\({_ARGS}\)", r"is.na(\1)"),
]

_OPERATORS: List[Tuple[str, Replacement]] = [
    (r"\bAND\b", "&"),
    (r"\bOR\b", "|"),
    (r"\bNOT\b\s*", "!"),
    (r"\bEQ\b", "=="),
    (r"\bNE\b", "!="),
    (r"\bGE\b", ">="),
    (r"\bLE\b", "<="),
    (r"\bGT\b", ">"),
    (r"\bLT\b", "<"),
    (r"(?<![\w.])\.(?![\w.])", "NA"),
]

_RULES = [(re.compile(p, _FLAGS), r) for p, r in _STATEMENTS + _FUNCTIONS + _OPERATORS]


def _restore(token: str) -> str:
    if token.startswith("/*"):
        lines = [line.strip() for line in token[2:-2].strip().splitlines()]
        return "\n".join(f"# {line}".rstrip() for line in lines)
    return token


def convert_sas_to_r(sas_code: str) -> str:
    """
    Translate SAS code into an R draft.

    Args:
        sas_code: SAS program text

    Returns:
        R code using dplyr verbs, with trailing whitespace removed
    """
    protected: List[str] = []

    def _stash(m: "re.Match[str]") -> str:
        protected.append(m.group(0))
        return f"\x00{len(protected) - 1}\x00"

    r_code = _PROTECTED.sub(_stash, sas_code)
    for pattern, repl in _RULES:
        r_code = pattern.sub(repl, r_code)
    r_code = _PLACEHOLDER.sub(lambda m: _restore(protected[int(m.group(1))]), r_code)
    return "\n".join(line.rstrip() for line in r_code.strip("\n").splitlines()) + "\n"
