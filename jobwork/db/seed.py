"""
Startup data: SKU catalog and the bootstrap admin account.
"""
from jobwork.core.logging import get_logger
from jobwork.core.security import get_password_hash
from jobwork.storage import Storage
from jobwork.storage.entities import SKU, User, UserRole

logger = get_logger(__name__)


SKU_CATALOG = [
    # Mechanical manufacturing
    {
        "code": "MECH_CNC_001",
        "industry": "mechanical_manufacturing",
        "process_name": "CNC Machining - Precision Parts",
        "description": "Precision CNC machining for mechanical components including brackets, housings, and custom parts",
        "default_moq": 100,
        "default_lead_time_days": 14,
        "parameters_schema": {
            "material": ["Aluminum 6061", "Steel 4140", "Stainless Steel 316"],
            "tolerance": "±0.1mm",
            "finish": ["Anodized", "Powder Coated", "Raw"],
        },
    },
    {
        "code": "MECH_CAST_001",
        "industry": "mechanical_manufacturing",
        "process_name": "Investment Casting - Mechanical Components",
        "description": "Investment casting for complex mechanical parts with tight tolerances",
        "default_moq": 500,
        "default_lead_time_days": 21,
        "parameters_schema": {
            "material": ["Aluminum A356", "Steel 1045", "Cast Iron"],
            "complexity": ["Simple", "Medium", "Complex"],
            "finish": ["As Cast", "Machined", "Painted"],
        },
    },
    {
        "code": "MECH_SHEET_001",
        "industry": "mechanical_manufacturing",
        "process_name": "Sheet Metal Fabrication",
        "description": "Sheet metal cutting, bending, and forming for custom fabrications",
        "default_moq": 50,
        "default_lead_time_days": 10,
        "parameters_schema": {
            "material": ["Mild Steel", "Stainless Steel", "Aluminum"],
            "thickness": ["1mm", "2mm", "3mm", "5mm"],
            "finish": ["Galvanized", "Powder Coated", "Raw"],
        },
    },
    # Electronics & electrical
    {
        "code": "ELEC_PCB_001",
        "industry": "electronics_electrical",
        "process_name": "PCB Manufacturing & Assembly",
        "description": "Complete PCB fabrication and SMT assembly services",
        "default_moq": 50,
        "default_lead_time_days": 10,
        "parameters_schema": {
            "layers": ["2-Layer", "4-Layer", "6-Layer", "8-Layer"],
            "thickness": "1.6mm",
            "finish": ["HASL", "ENIG", "OSP"],
        },
    },
    {
        "code": "ELEC_MOLD_001",
        "industry": "electronics_electrical",
        "process_name": "Injection Molding - Electronics Housings",
        "description": "Injection molding for electronic device enclosures and housings",
        "default_moq": 1000,
        "default_lead_time_days": 18,
        "parameters_schema": {
            "material": ["ABS", "PC", "PC+ABS", "Nylon"],
            "color": ["Black", "White", "Clear", "Custom"],
            "texture": ["Smooth", "Textured", "Matte"],
        },
    },
    # Packaging & printing
    {
        "code": "PACK_CORR_001",
        "industry": "packaging_printing",
        "process_name": "Corrugated Box Manufacturing",
        "description": "Custom corrugated packaging and shipping boxes",
        "default_moq": 1000,
        "default_lead_time_days": 7,
        "parameters_schema": {
            "style": ["Regular Slotted", "Full Overlap", "Half Slotted"],
            "flute": ["Single Wall", "Double Wall", "Triple Wall"],
            "printing": ["1 Color", "2 Color", "4 Color", "Digital"],
        },
    },
    {
        "code": "PACK_FLEX_001",
        "industry": "packaging_printing",
        "process_name": "Flexible Packaging - Pouches & Films",
        "description": "Flexible packaging solutions including pouches, films, and bags",
        "default_moq": 5000,
        "default_lead_time_days": 12,
        "parameters_schema": {
            "material": ["PE", "PP", "PET", "Aluminum Foil"],
            "type": ["Stand-up Pouch", "Flat Pouch", "Roll Film"],
            "printing": ["Gravure", "Flexographic", "Digital"],
        },
    },
    # Textile & leather
    {
        "code": "TEXT_EMBB_001",
        "industry": "textile_leather",
        "process_name": "Custom Embroidery Services",
        "description": "Custom embroidery for apparel, caps, and textile products",
        "default_moq": 100,
        "default_lead_time_days": 5,
        "parameters_schema": {
            "fabric": ["Cotton", "Polyester", "Cotton Blend", "Denim"],
            "colors": ["1-3 Colors", "4-6 Colors", "7+ Colors"],
            "size": ["Small (2-3 inch)", "Medium (4-5 inch)", "Large (6+ inch)"],
        },
    },
    # Construction & infrastructure
    {
        "code": "CONST_STEEL_001",
        "industry": "construction_infrastructure",
        "process_name": "Structural Steel Fabrication",
        "description": "Custom structural steel fabrication for construction and infrastructure",
        "default_moq": 1,
        "default_lead_time_days": 30,
        "parameters_schema": {
            "grade": ["A36", "A572 Grade 50", "A992"],
            "coating": ["Galvanized", "Painted", "Raw"],
            "certification": ["AISC", "AWS D1.1", "Custom"],
        },
    },
]


def seed_skus(storage: Storage) -> int:
    """Insert catalog SKUs that are not present yet."""
    with storage.transaction():
        added = storage.seed_skus([SKU(**data) for data in SKU_CATALOG])
    if added:
        logger.info(f"Seeded {added} SKUs")
    return added


def bootstrap_admin(storage: Storage, email: str, password: str) -> User:
    """Create the admin account if it does not exist. Admins cannot self-register."""
    existing = storage.get_user_by_email(email)
    if existing is not None:
        if existing.role != UserRole.ADMIN.value:
            logger.warning(f"Bootstrap admin email {email} belongs to a {existing.role} account")
        return existing

    admin = storage.create_user(User(
        email=email,
        hashed_password=get_password_hash(password),
        role=UserRole.ADMIN.value,
        name="Platform Administrator",
        is_verified=True,
    ))
    logger.info(f"Bootstrap admin {admin.id} created")
    return admin


def prepare_storage(storage: Storage, settings) -> None:
    """Schema check, admin bootstrap and SKU seeding, run once at startup."""
    if storage.backend_name == "sql":
        from jobwork.db.session import init_schema
        create_missing = settings.DEBUG or settings.DATABASE_URL.startswith("sqlite")
        if not init_schema(storage.engine, create_missing=create_missing):
            return

    if settings.ADMIN_BOOTSTRAP_EMAIL and settings.ADMIN_BOOTSTRAP_PASSWORD:
        bootstrap_admin(storage, settings.ADMIN_BOOTSTRAP_EMAIL, settings.ADMIN_BOOTSTRAP_PASSWORD)

    if settings.SEED_SKUS:
        seed_skus(storage)
