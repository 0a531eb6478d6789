"""Search-term normalization, store URL templates and CEP formatting.

Every caller that turns an item into a store URL goes through
``normalize_search_query`` and ``build_store_url`` so that the URL stored in
a click event is the same URL the shopper opens.
"""
import re
import unicodedata
from typing import Optional

_COMBINING_MARKS = re.compile(r"[\u0300-\u036f]")
_NON_SEARCH_CHARS = re.compile(r"[^a-z0-9\s+]")
# "+" is the output separator, so it is read back as whitespace
_SEPARATOR_RUN = re.compile(r"[\s+]+")
_NON_DIGITS = re.compile(r"\D")
_CEP_INPUT = re.compile(r"^[\d\s.\-]+$")

CEP_LENGTH = 8
CEP_PREFIX_LENGTH = 5


def normalize_search_query(text: Optional[str]) -> str:
    """Turn free text into a ``+``-joined, lowercase ASCII search term.

    >>> normalize_search_query("Lápis de Cor nº 2!")
    'lapis+de+cor+n+2'
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text)
    cleaned = _COMBINING_MARKS.sub("", decomposed).lower()
    cleaned = _NON_SEARCH_CHARS.sub("", cleaned)
    return _SEPARATOR_RUN.sub(" ", cleaned).strip().replace(" ", "+")


def build_store_url(
    template: str,
    base_url: str,
    query: str,
    affiliate_tag: Optional[str],
) -> str:
    """Expand a partner store search template.

    Stored templates always carry a ``tag=`` parameter, so when the store has
    no affiliate tag the leftover ``&tag=`` / ``?tag=`` and a trailing ``?``
    are removed textually. Only the first occurrence of each placeholder and
    fragment is touched.
    """
    url = (
        template
        .replace("{{base_url}}", base_url, 1)
        .replace("{{query}}", query, 1)
        .replace("{{affiliate_tag}}", affiliate_tag or "", 1)
    )

    if not affiliate_tag:
        url = url.replace("&tag=", "", 1).replace("?tag=", "?", 1)
        if url.endswith("?"):
            url = url[:-1]

    return url


def normalize_cep(cep: Optional[str]) -> str:
    """Keep only the digits of a CEP, at most eight."""
    if not cep:
        return ""
    return _NON_DIGITS.sub("", cep)[:CEP_LENGTH]


def format_cep(cep: Optional[str]) -> str:
    clean = normalize_cep(cep)
    if len(clean) == CEP_LENGTH:
        return f"{clean[:5]}-{clean[5:]}"
    return clean


def is_cep_search(text: Optional[str]) -> bool:
    """True when the input looks like a (possibly partial) CEP of 5+ digits."""
    if not text or not _CEP_INPUT.match(text.strip()):
        return False
    return len(normalize_cep(text)) >= CEP_PREFIX_LENGTH


BRAZIL_STATES = {
    "AC": "Acre",
    "AL": "Alagoas",
    "AP": "Amapá",
    "AM": "Amazonas",
    "BA": "Bahia",
    "CE": "Ceará",
    "DF": "Distrito Federal",
    "ES": "Espírito Santo",
    "GO": "Goiás",
    "MA": "Maranhão",
    "MT": "Mato Grosso",
    "MS": "Mato Grosso do Sul",
    "MG": "Minas Gerais",
    "PA": "Pará",
    "PB": "Paraíba",
    "PR": "Paraná",
    "PE": "Pernambuco",
    "PI": "Piauí",
    "RJ": "Rio de Janeiro",
    "RN": "Rio Grande do Norte",
    "RS": "Rio Grande do Sul",
    "RO": "Rondônia",
    "RR": "Roraima",
    "SC": "Santa Catarina",
    "SP": "São Paulo",
    "SE": "Sergipe",
    "TO": "Tocantins",
}

_STATE_BY_NAME = {normalize_search_query(name): code for code, name in BRAZIL_STATES.items()}


def to_state_code(state: Optional[str]) -> Optional[str]:
    """Map a UF code or a full state name (as geocoders return it) to the UF code.

    >>> to_state_code("São Paulo")
    'SP'
    """
    if not state:
        return None
    value = state.strip()
    if value.upper() in BRAZIL_STATES:
        return value.upper()
    return _STATE_BY_NAME.get(normalize_search_query(value))
