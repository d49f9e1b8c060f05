"""Display names and care advice for the disease model's labels."""

from src.api.detection.schemas import DiseaseInfo

GENERIC_ADVICE = (
    "Disease detected. Please consult with an agricultural expert for proper "
    "diagnosis and treatment."
)

DISEASE_INFO: dict[str, DiseaseInfo] = {
    "black spot": DiseaseInfo(
        canonical_name="Black Spot Disease",
        description=(
            "Black spot is a fungal disease that causes dark spots on leaves and "
            "fruits. It thrives in warm, humid conditions. Treatment: Remove "
            "affected leaves, improve air circulation, apply copper-based "
            "fungicides, and avoid overhead watering."
        ),
    ),
    "canker": DiseaseInfo(
        canonical_name="Citrus Canker",
        description=(
            "Citrus canker is a bacterial disease causing raised lesions on "
            "leaves, stems, and fruit. It spreads rapidly in wet conditions. "
            "Treatment: Remove and destroy infected plant parts, apply copper "
            "sprays, quarantine affected plants, and practice good sanitation."
        ),
    ),
    "greening": DiseaseInfo(
        canonical_name="Citrus Greening (Huanglongbing)",
        description=(
            "Citrus greening is a serious bacterial disease transmitted by "
            "psyllids. It causes yellowing of leaves, stunted growth, and bitter "
            "fruit. Treatment: Remove infected trees immediately, control psyllid "
            "populations with insecticides, and plant disease-free nursery stock."
        ),
    ),
    "healthy calamansi": DiseaseInfo(
        canonical_name="Healthy Calamansi",
        description=(
            "This calamansi appears healthy with no visible signs of disease. "
            "Continue regular care: proper watering, fertilization, pruning, and "
            "monitoring for early signs of pests or diseases to maintain plant "
            "health."
        ),
    ),
    "scab": DiseaseInfo(
        canonical_name="Citrus Scab",
        description=(
            "Citrus scab is a fungal disease causing raised, corky lesions on "
            "fruit and leaves. It affects young tissue during wet weather. "
            "Treatment: Apply copper fungicides during early growth stages, "
            "improve drainage, prune to increase air circulation, and remove "
            "infected fruit."
        ),
    ),
    "thrips": DiseaseInfo(
        canonical_name="Thrips Damage",
        description=(
            "Thrips are tiny insects that cause silvery streaks, distorted "
            "leaves, and scarred fruit. They thrive in hot, dry conditions. "
            "Treatment: Use insecticidal soaps or neem oil, introduce beneficial "
            "insects, maintain proper moisture levels, and remove heavily "
            "infested plant parts."
        ),
    ),
}


def normalize_label(label: str) -> str:
    """'Black_Spot ' and 'black-spot' both become 'black spot'."""
    return " ".join(label.replace("_", " ").replace("-", " ").lower().split())


def get_disease_info(label: str) -> DiseaseInfo:
    """Look up a label, falling back to the raw label and generic advice."""
    info = DISEASE_INFO.get(normalize_label(label))
    if info is not None:
        return info
    return DiseaseInfo(
        canonical_name=label.strip() or "Unknown condition",
        description=GENERIC_ADVICE,
    )
