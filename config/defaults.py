# Reihenfolge der Jahrgänge für die Nachbarschafts-Bewertung.
# Nur TK..5 sind "benachbart"; 6-8 erhalten ausschließlich den Bonus
# für den gleichen Jahrgang.
GRADE_ORDER = ["TK", "K", "1", "2", "3", "4", "5"]

# Alle Jahrgänge, die der Demo-Generator und die CLI kennen
ALL_GRADES = ["TK", "K", "1", "2", "3", "4", "5", "6", "7", "8"]

# Jahrgänge mit eigenen Vormittags-/Nachmittags-Schulzeiten (K-AM, TK-PM, ...)
KINDERGARTEN_GRADES = ("K", "TK")

# ISO-Wochentage: 1=Montag .. 7=Sonntag
DAY_NAMES = {1: "Mo", 2: "Di", 3: "Mi", 4: "Do", 5: "Fr", 6: "Sa", 7: "So"}

# Unterrichtstage (Mo-Fr)
SCHOOL_DAYS = [1, 2, 3, 4, 5]


def default_placement_config(school_site: str = "Grundschule Am Park"):
    """Standard-Konfiguration: Richtlinienwerte des Förderdienstes.

    Harte Regeln:
      max. 8 gleichzeitige Sitzungen
      max. 60 Minuten am Stück pro Kind
      min. 30 Minuten Pause zwischen getrennten Sitzungen
      Fallback-Schulzeit 08:00 - 15:00

    Verteilung: automatische Strategiewahl, Jahrgangs-Gruppierung aktiv,
    Zwei-Pass-Grenzen 3 / 6.
    """
    # Import hier, damit models → config.defaults ohne Zyklus bleibt
    from config.schema import ConstraintConfig, DistributionConfig, PlacementConfig

    return PlacementConfig(
        school_site=school_site,
        constraints=ConstraintConfig(),
        distribution=DistributionConfig(),
        check_work_location=False,
    )
