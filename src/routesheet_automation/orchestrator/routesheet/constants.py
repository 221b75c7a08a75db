from __future__ import annotations

import re
from types import MappingProxyType
from typing import FrozenSet, Mapping, Tuple, NamedTuple

# Column slots of the printed route sheet, left to right.
POSITION_COUNT = 17
REQUIRED_POSITIONS: FrozenSet[int] = frozenset(range(1, POSITION_COUNT + 1))

POSITION_TO_SQL_COLUMN: Mapping[int, str] = MappingProxyType(
    {
        1: "tournee",
        2: "nom_compagnie",
        3: "debut_tournee",
        4: "fin_tournee",
        5: "classe_vehicule",
        6: "id_employe",
        7: "nom_employe_complet",
        8: "id_employe_confirm",
        9: "vehicule",
        10: "classe_vehicule_affecte",
        11: "autorisation",
        12: "approuve",
        13: "retour",
        14: "adresse_debut",
        15: "adresse_fin",
        16: "changement",
        17: "changement_par",
    }
)

SQL_COLUMNS: Tuple[str, ...] = tuple(POSITION_TO_SQL_COLUMN[p] for p in sorted(POSITION_TO_SQL_COLUMN))

_EMPLOYEE_HEADERS = ("Employé", "Employe", "ID employé", "No employé")

EXPECTED_HEADERS: Mapping[int, Tuple[str, ...]] = MappingProxyType(
    {
        1: ("Tournée", "Tournee", "No tournée"),
        2: ("Nom", "Nom compagnie", "Compagnie"),
        3: ("Déb tour", "Deb tour", "Début tour", "Debut tournee"),
        4: ("Fin tour", "Fin tournée", "Fin tournee"),
        5: ("Cl véh", "Cl veh", "Classe véh", "Classe vehicule"),
        6: _EMPLOYEE_HEADERS,
        7: ("Nom de l'employé", "Nom employé", "Nom emp"),
        # The sheet prints the employee column twice; the second is a confirmation.
        8: _EMPLOYEE_HEADERS,
        9: ("Véhicule", "Vehicule", "No véhicule", "Veh"),
        10: ("Cl véh aff", "Cl veh aff", "Classe aff"),
        11: ("Autoris", "Autorisation", "Auth"),
        12: ("Approuvé", "Approuve", "Validé", "Valide"),
        13: ("Retour", "Retour chauffeur"),
        14: ("Adresse de début", "Adresse debut", "Adr debut", "Départ"),
        15: ("Adresse de fin", "Adresse fin", "Adr fin", "Arrivée"),
        16: ("Changement", "Change", "Modif"),
        17: ("Changement par", "Change par", "Modifié par"),
    }
)


class FormatRule(NamedTuple):
    position: int
    field: str
    pattern: "re.Pattern[str]"
    description: str


_TIME = re.compile(r"\d{1,2}:\d{2}", re.ASCII)
_FOUR_DIGITS = re.compile(r"\d{4}", re.ASCII)

# Checked in this order; each rule is independent of the others.
FORMAT_RULES: Tuple[FormatRule, ...] = (
    FormatRule(1, "tournee", re.compile(r"TCT\d{4}", re.ASCII), "TCT#### (e.g. TCT0046)"),
    FormatRule(6, "id_employe", _FOUR_DIGITS, "4 digits (e.g. 0450)"),
    FormatRule(8, "id_employe_confirm", _FOUR_DIGITS, "4 digits (e.g. 0450)"),
    FormatRule(9, "vehicule", re.compile(r"\d{3}", re.ASCII), "3 digits (e.g. 232)"),
    FormatRule(3, "debut_tournee", _TIME, "HH:MM (e.g. 9:18)"),
    FormatRule(4, "fin_tournee", _TIME, "HH:MM (e.g. 9:54)"),
)

# Column shift heuristics
EMPLOYEE_ID_POSITION = 6
VEHICLE_POSITION = 9
APPROVED_POSITION = 12
APPROVED_MARKS: FrozenSet[str] = frozenset({"✓", ""})
