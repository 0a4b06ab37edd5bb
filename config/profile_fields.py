"""Profile and fun-facts fields scored for completion.

Order matters: missing fields are reported in this order.
"""

PROFILE_SCORED_KEYS = (
    "first_name", "last_name", "birthdate", "gender",
    "city", "zone", "profession", "sector",
    "relationship_status", "housing_status",
    "children_has", "zodiac_sign", "religion",
    "has_vehicle", "smoker", "alcohol", "sport_frequency",
    "height_cm", "skin_tone", "hair_length", "hair_texture", "hair_style",
    "clothing_size", "fashion_style",
    "bio_short", "bio_long",
    "lover_cv_short", "lover_cv_long",
)

FUN_FACTS_KEYS = (
    # Food
    "fav_dish", "sweet_pleasure", "dislikes_food", "allergies", "team_environment",
    # Culture
    "last_book_or_alt", "movie_or_series_like_me", "music_of_the_moment", "ideal_weekend_activity",
    # Emotion
    "best_recognized_quality", "small_flaw", "i_appreciate_in_someone", "dealbreaker_text",
    # Story
    "bravest_thing_done", "surprising_fact", "happiest_when",
    # Projection
    "i_am_looking_for", "in_2_5_years_i_want", "love_language",
)

FIELD_LABELS = {
    "first_name": "Prenom",
    "last_name": "Nom",
    "birthdate": "Date de naissance",
    "gender": "Genre",
    "relationship_status": "Situation",
    "city": "Ville",
    "zone": "Zone",
    "profession": "Profession",
    "sector": "Secteur",
    "housing_status": "Logement",
    "height_cm": "Taille (cm)",
    "skin_tone": "Teint",
    "hair_length": "Longueur cheveux",
    "hair_texture": "Texture cheveux",
    "hair_style": "Coiffure",
    "clothing_size": "Taille vetements",
    "fashion_style": "Style",
    "smoker": "Fumeur",
    "alcohol": "Alcool",
    "sport_frequency": "Sport",
    "has_vehicle": "Vehicule",
    "children_has": "Enfants",
    "zodiac_sign": "Signe",
    "religion": "Religion",
    "bio_short": "Bio courte",
    "bio_long": "Bio longue",
    "lover_cv_short": "CV amoureux court",
    "lover_cv_long": "CV amoureux long",
    "fav_dish": "Plat prefere",
    "sweet_pleasure": "Plaisir sucre",
    "dislikes_food": "N'aime pas",
    "allergies": "Allergies",
    "team_environment": "Team",
    "last_book_or_alt": "Dernier livre / podcast",
    "movie_or_series_like_me": "Film / serie qui me ressemble",
    "music_of_the_moment": "Musique du moment",
    "ideal_weekend_activity": "Weekend ideal",
    "best_recognized_quality": "Qualite reconnue",
    "small_flaw": "Petit defaut",
    "i_appreciate_in_someone": "J'apprecie chez quelqu'un",
    "dealbreaker_text": "Dealbreaker",
    "bravest_thing_done": "Chose la plus courageuse",
    "surprising_fact": "Fait surprenant",
    "happiest_when": "Le plus heureux quand",
    "i_am_looking_for": "Je recherche",
    "in_2_5_years_i_want": "Dans 2-5 ans",
    "love_language": "Langage d'amour",
}
