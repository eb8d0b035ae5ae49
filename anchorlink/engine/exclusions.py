"""Curated exclusion lists used by the content filter.

The phrase list is matched as a lowercase substring of the whole URL, the
site patterns against the URL path only, and the forum indicators against
the meta description as standalone words or phrases.
"""

from __future__ import annotations

from typing import Tuple

EXCLUDED_URL_PHRASES: Tuple[str, ...] = (
    # authentication and account
    "mot-de-passe",
    "motdepasse",
    "password",
    "login",
    "logout",
    "signin",
    "signout",
    "signup",
    "register",
    "inscription",
    "connexion",
    "deconnexion",
    "auth",
    "authentication",
    "compte",
    "account",
    "profile",
    "profil",
    # back office
    "admin",
    "dashboard",
    "tableau-de-bord",
    "settings",
    "parametres",
    "preferences",
    "configuration",
    "wp-admin",
    # legal
    "privacy",
    "confidentialite",
    "mentions-legales",
    "conditions",
    "terms",
    "legal",
    "disclaimer",
    "cookies",
    "gdpr",
    "rgpd",
    # contact and support
    "contact",
    "support",
    "aide",
    "help",
    # technical
    "debug",
    "dev",
    "test",
    "staging",
    "beta",
    "sandbox",
    "console",
    "panel",
    "backend",
    "api",
)

SITE_SPECIFIC_EXCLUDED_PATTERNS: Tuple[str, ...] = (
    "forum",
    "3d",
)

FORUM_INDICATORS: Tuple[str, ...] = (
    # first person
    "je",
    "j'ai",
    "j'aimerais",
    "j'aurais",
    "j'espère",
    "j'aurai",
    "mon",
    "ma",
    "mes",
    "moi je",
    "nous avons",
    "nous voulons",
    "nous venons",
    "pensez-vous",
    # requests for help
    "quelqu'un peut",
    "personne sait",
    "qui peut m'aider",
    "besoin d'aide",
    "aidez-moi",
    "pouvez-vous",
    "peux-tu",
    "peux-tu m'aider",
    "merci d'avance",
    "svp",
    "s'il vous plaît",
    # greetings
    "salut",
    "coucou",
    "bonsoir les amis",
    "bonjour",
    "bonsoir",
    "hello",
    # chat register
    "bcp",
    "qqun",
    "mdr",
    "lol",
    "qlqn",
    "!!!",
    "???",
    "!!",
    "....",
    # personal context
    "chez moi",
    "dans ma",
    "dans mon",
    "j'habite",
    "on habite",
    "forum",
    "discussion",
)
