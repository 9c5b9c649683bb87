"""
Standard catalog categories and fields seeded on startup.
"""

STANDARD_CATEGORIES = [
    {
        "name": "identity",
        "display_name": "Identity & Personal",
        "description": "Personal identification and demographic information",
        "color": "#3b82f6",
        "icon": "UserIcon",
        "sort_order": 1,
    },
    {
        "name": "contact",
        "display_name": "Contact Information",
        "description": "Communication and contact details",
        "color": "#10b981",
        "icon": "PhoneIcon",
        "sort_order": 2,
    },
    {
        "name": "location",
        "display_name": "Geographic Location",
        "description": "Address and geographic information",
        "color": "#f59e0b",
        "icon": "MapPinIcon",
        "sort_order": 3,
    },
    {
        "name": "financial",
        "display_name": "Financial Data",
        "description": "Monetary amounts, accounts and transactions",
        "color": "#ef4444",
        "icon": "CurrencyDollarIcon",
        "sort_order": 4,
    },
    {
        "name": "temporal",
        "display_name": "Time & Dates",
        "description": "Timestamps and date information",
        "color": "#8b5cf6",
        "icon": "ClockIcon",
        "sort_order": 5,
    },
    {
        "name": "business",
        "display_name": "Business Data",
        "description": "Organizational and business information",
        "color": "#06b6d4",
        "icon": "BuildingOfficeIcon",
        "sort_order": 6,
    },
    {
        "name": "system",
        "display_name": "System & Technical",
        "description": "Record identifiers and system metadata",
        "color": "#6b7280",
        "icon": "CogIcon",
        "sort_order": 7,
    },
    {
        "name": "custom",
        "display_name": "Custom Fields",
        "description": "User-defined fields",
        "color": "#ec4899",
        "icon": "PuzzlePieceIcon",
        "sort_order": 8,
    },
]


def _field(name, display_name, data_type, category, description, tags, rules=None, required=False):
    return {
        "name": name,
        "display_name": display_name,
        "description": description,
        "data_type": data_type,
        "category": category,
        "is_required": required,
        "validation_rules": rules,
        "tags": tags,
    }


def _money(name, display_name, description, tags):
    return _field(
        name, display_name, "currency", "financial", description, tags,
        {"min": 0, "decimal_places": 2},
    )


STANDARD_FIELDS = [
    # identity
    _field("person_id", "Person ID", "string", "identity",
           "Unique identifier for a person", ["identifier", "primary-key"]),
    _field("first_name", "First Name", "string", "identity",
           "Given name", ["personal", "name"], {"min_length": 1, "max_length": 50}),
    _field("last_name", "Last Name", "string", "identity",
           "Family name or surname", ["personal", "name"], {"min_length": 1, "max_length": 50}),
    _field("full_name", "Full Name", "string", "identity",
           "Complete name", ["personal", "name", "display"], {"max_length": 100}),
    _field("date_of_birth", "Date of Birth", "date", "identity",
           "Birth date", ["personal", "sensitive", "pii"]),
    _field("gender", "Gender", "string", "identity", "Gender identity", ["personal", "demographic"],
           {"enum": ["male", "female", "other", "prefer-not-to-say"]}),
    # contact
    _field("email_address", "Email Address", "email", "contact",
           "Primary email address", ["contact", "communication", "pii"],
           {"pattern": r"^[^@]+@[^@]+\.[^@]+$"}),
    _field("phone_number", "Phone Number", "phone", "contact",
           "Primary phone number", ["contact", "communication", "pii"],
           {"pattern": r"^[+]?[0-9\s\-\(\)]{7,15}$"}),
    _field("mobile_number", "Mobile Number", "phone", "contact",
           "Mobile phone number", ["contact", "communication", "mobile"]),
    # location
    _field("street_address", "Street Address", "string", "location",
           "Street address line", ["address", "location", "pii"], {"max_length": 200}),
    _field("city", "City", "string", "location", "City name", ["address", "location"],
           {"max_length": 100}),
    _field("state_province", "State/Province", "string", "location",
           "State or province", ["address", "location"], {"max_length": 100}),
    _field("postal_code", "Postal Code", "string", "location",
           "ZIP or postal code", ["address", "location"], {"max_length": 20}),
    _field("country", "Country", "string", "location", "Country name or code",
           ["address", "location"], {"max_length": 100}),
    # financial
    _field("account_number", "Account Number", "string", "financial",
           "Financial account number", ["financial", "account", "sensitive"]),
    _field("transaction_amount", "Transaction Amount", "number", "financial",
           "Monetary amount of a transaction", ["financial", "amount"], {"min": 0}),
    _field("currency_code", "Currency Code", "string", "financial",
           "ISO 4217 currency code", ["financial", "currency"],
           {"pattern": r"^[A-Z]{3}$", "min_length": 3, "max_length": 3}),
    _money("billing_amount", "Billing Amount", "Amount billed", ["financial", "billing", "amount"]),
    _money("payment_amount", "Payment Amount", "Amount paid", ["financial", "payment", "amount"]),
    _money("total_cost", "Total Cost", "Total cost", ["financial", "cost", "total"]),
    _money("unit_price", "Unit Price", "Price per unit", ["financial", "price"]),
    _money("discount_amount", "Discount Amount", "Discount applied", ["financial", "discount"]),
    _money("tax_amount", "Tax Amount", "Tax charged", ["financial", "tax"]),
    _money("insurance_coverage", "Insurance Coverage", "Amount covered by insurance",
           ["financial", "insurance", "healthcare"]),
    _money("copay_amount", "Copay Amount", "Patient copay", ["financial", "healthcare", "copay"]),
    _money("deductible_amount", "Deductible Amount", "Deductible applied",
           ["financial", "healthcare", "deductible"]),
    # temporal
    _field("created_timestamp", "Created Timestamp", "datetime", "temporal",
           "When the record was created", ["temporal", "audit", "created"]),
    _field("modified_timestamp", "Modified Timestamp", "datetime", "temporal",
           "When the record was last modified", ["temporal", "audit", "modified"]),
    _field("event_date", "Event Date", "date", "temporal", "Date of an event",
           ["temporal", "event"]),
    # business
    _field("organization_id", "Organization ID", "string", "business",
           "Organization identifier", ["business", "identifier"]),
    _field("organization_name", "Organization Name", "string", "business",
           "Organization name", ["business", "organization"], {"max_length": 200}),
    _field("department", "Department", "string", "business", "Department or division",
           ["business", "organization"], {"max_length": 100}),
    # system
    _field("record_id", "Record ID", "string", "system", "Unique record identifier",
           ["system", "identifier"], required=True),
    _field("source_system", "Source System", "string", "system",
           "System the record originated from", ["system", "lineage"]),
    _field("data_quality_score", "Data Quality Score", "number", "system",
           "Quality score between 0 and 100", ["system", "quality"], {"min": 0, "max": 100}),
]

# Synonyms matched by substring containment either way against the
# normalized source field name.
COMMON_PATTERNS = {
    "email_address": ["email", "mail", "e_mail"],
    "phone_number": ["phone", "tel", "telephone", "mobile"],
    "first_name": ["fname", "firstname", "given_name"],
    "last_name": ["lname", "lastname", "surname", "family_name"],
    "street_address": ["address", "addr", "street"],
    "postal_code": ["zip", "zipcode", "postcode"],
    "date_of_birth": ["dob", "birthdate", "birth_date"],
    "created_timestamp": ["created", "create_date", "creation_time"],
    "modified_timestamp": ["modified", "updated", "last_modified"],
    "billing_amount": ["billing", "bill", "charge", "charged_amount", "billed_amount"],
    "payment_amount": ["payment", "paid", "pay_amount", "amount_paid"],
    "total_cost": ["total", "cost", "total_cost", "total_amount", "amount"],
    "unit_price": ["price", "unit_price", "cost_per_unit", "rate"],
    "discount_amount": ["discount", "discount_amount", "savings"],
    "tax_amount": ["tax", "tax_amount", "taxes", "tax_total"],
    "insurance_coverage": ["insurance", "coverage", "covered", "insurance_amount"],
    "copay_amount": ["copay", "co_pay", "copayment", "patient_pay"],
    "deductible_amount": ["deductible", "deductible_amount", "patient_deductible"],
    "transaction_amount": ["transaction", "amount", "trans_amount"],
}

IMPORT_TEMPLATE = {
    "version": "1.0",
    "categories": [
        {
            "name": "custom_category",
            "display_name": "Custom Category",
            "description": "Description of the category",
            "color": "#6b7280",
            "icon": "folder",
            "sort_order": 100,
        }
    ],
    "fields": [
        {
            "name": "example_field",
            "display_name": "Example Field",
            "description": "This is an example field",
            "data_type": "string",
            "category": "custom_category",
            "is_required": False,
            "tags": ["example", "template"],
            "validation_rules": {"min_length": 1, "max_length": 100},
        }
    ],
}
