"""
Briefing templates: read-only catalog of project templates and the
per-category questions that guide the briefing interview.

A template's ``questions`` are the common questions followed by its
category's questions and any template-specific extras. Each question names
the briefing ``field`` its answer fills.
"""

from app.core.exceptions import NotFoundError


def _q(qid, field, question, placeholder, required=False):
    return {"id": qid, "field": field, "question": question, "placeholder": placeholder, "required": required}


BRIEFING_QUESTIONS = {
    "common": [
        _q("objective", "business_objective", "What is the main goal of this project?",
           "Describe the problem to solve or the business goal...", True),
        _q("audience", "target_audience", "Who is the target audience?",
           "Describe who will use the product or service...", True),
        _q("deadline", "deadline_text", "When should the project be finished?",
           "e.g. 3 months, by March 2025..."),
        _q("budget", "budget", "What budget range is available?", "e.g. R$ 10.000 - R$ 30.000"),
    ],
    "web": [
        _q("web_type", "project_type", "What kind of website or web system do you need?",
           "e.g. e-commerce, institutional site, management system, SaaS...", True),
        _q("web_features", "desired_scope", "Which main features should it have?",
           "e.g. user sign-up, shopping cart, admin dashboard...", True),
        _q("web_integrations", "technical_restrictions", "Does it need to integrate with existing systems?",
           "e.g. ERP, payment gateway, external APIs..."),
        _q("web_seo", "success_criteria", "Which success metrics matter?",
           "e.g. sales conversion, load time, SEO ranking..."),
    ],
    "mobile": [
        _q("mobile_platform", "project_type", "Which platforms will the app target?",
           "iOS, Android or both (cross-platform)", True),
        _q("mobile_features", "desired_scope", "Which main features should the app have?",
           "e.g. social login, push notifications, GPS, camera...", True),
        _q("mobile_offline", "technical_restrictions", "Does the app need to work offline?",
           "Describe connectivity requirements..."),
        _q("mobile_monetization", "success_criteria", "What is the monetization model?",
           "e.g. free, freemium, subscription, in-app purchases..."),
    ],
    "marketing": [
        _q("mkt_goal", "project_type", "What is the goal of the campaign or marketing project?",
           "e.g. product launch, lead generation, branding...", True),
        _q("mkt_channels", "desired_scope", "Which marketing channels will be used?",
           "e.g. social media, email marketing, Google Ads, SEO...", True),
        _q("mkt_competition", "market_niche", "Who are the main competitors?",
           "List direct and indirect competitors..."),
        _q("mkt_kpis", "success_criteria", "Which KPIs will measure success?",
           "e.g. CAC, ROI, conversion rate, engagement...", True),
    ],
    "design": [
        _q("design_type", "project_type", "What kind of design do you need?",
           "e.g. UI/UX, branding, visual identity, presentation...", True),
        _q("design_deliverables", "desired_scope", "Which deliverables are expected?",
           "e.g. logo, brand manual, prototypes, assets...", True),
        _q("design_references", "technical_restrictions", "Do you have visual references or preferred styles?",
           "Describe styles and colors, or share inspiration links..."),
        _q("design_formats", "success_criteria", "In which formats should files be delivered?",
           "e.g. Figma, AI, PSD, PNG, SVG..."),
    ],
    "consulting": [
        _q("consult_area", "project_type", "Which area needs consulting?",
           "e.g. technology, processes, strategy, digital transformation...", True),
        _q("consult_challenge", "desired_scope", "What are the main current challenges?",
           "Describe the problems or bottlenecks you face...", True),
        _q("consult_team", "technical_restrictions", "How large is the team involved and how is it organized?",
           "Describe the team taking part in the project..."),
        _q("consult_outcomes", "success_criteria", "Which results do you expect?",
           "Describe goals and success metrics...", True),
    ],
}


def _template(tid, name, description, icon, category, extra=None, suggested_stack=None, category_questions=True):
    questions = list(BRIEFING_QUESTIONS["common"])
    if category_questions:
        questions += BRIEFING_QUESTIONS.get(category, [])
    questions += extra or []
    return {
        "id": tid,
        "name": name,
        "description": description,
        "icon": icon,
        "category": category,
        "questions": questions,
        "suggested_stack": suggested_stack or [],
    }


PROJECT_TEMPLATES = [
    _template("web-saas", "Web Application / SaaS", "Web system, SaaS platform, admin panel",
              "Globe", "web", suggested_stack=["React", "Node.js", "PostgreSQL", "TypeScript"]),
    _template("web-ecommerce", "E-commerce", "Online store, marketplace, online sales system",
              "ShoppingCart", "web", extra=[
                  _q("ecom_products", "market_niche", "How many products or SKUs will be listed at launch?",
                     "e.g. 50 products, 500 SKUs..."),
                  _q("ecom_payment", "compliance", "Which payment methods must be accepted?",
                     "e.g. PIX, credit card, boleto, installments...", True),
              ], suggested_stack=["React", "Node.js", "PostgreSQL", "Stripe"]),
    _template("mobile-app", "Mobile App", "iOS, Android or cross-platform app",
              "Smartphone", "mobile", suggested_stack=["React Native", "Expo", "Firebase"]),
    _template("landing-page", "Landing Page", "Capture page, sales page, institutional page",
              "Layout", "web", category_questions=False, extra=[
                  _q("lp_goal", "project_type", "What is the main goal of the landing page?",
                     "e.g. lead capture, product sale, presentation...", True),
                  _q("lp_cta", "desired_scope", "What is the main action a visitor should take?",
                     "e.g. fill a form, buy, book a meeting...", True),
                  _q("lp_traffic", "success_criteria", "Where will the page traffic come from?",
                     "e.g. Google Ads, Facebook Ads, organic, email..."),
              ], suggested_stack=["React", "TailwindCSS"]),
    _template("marketing-digital", "Digital Marketing", "Marketing campaign, social media management, paid traffic",
              "Megaphone", "marketing"),
    _template("branding", "Branding & Visual Identity", "Logo, brand manual, complete visual identity",
              "Palette", "design"),
    _template("ui-ux", "UI/UX Design", "Interface design, prototypes, user research",
              "Figma", "design", extra=[
                  _q("ux_research", "technical_restrictions", "Do you already have user research or personas?",
                     "Describe existing research or whether it needs to be done..."),
              ]),
    _template("consulting", "Consulting", "Technical, strategic or process consulting",
              "Lightbulb", "consulting"),
    _template("custom", "Custom Project", "Any other kind of project",
              "Puzzle", "custom", extra=[
                  _q("custom_type", "project_type", "Describe the kind of project you need",
                     "Explain in detail what you need...", True),
                  _q("custom_scope", "desired_scope", "Which deliverables are expected?",
                     "List the expected deliverables and results...", True),
                  _q("custom_requirements", "technical_restrictions",
                     "Are there technical requirements or specific constraints?",
                     "Describe requirements, limitations or preferences..."),
              ]),
]

_BY_ID = {t["id"]: t for t in PROJECT_TEMPLATES}


def list_templates(category=None):
    if category:
        return [t for t in PROJECT_TEMPLATES if t["category"] == category]
    return list(PROJECT_TEMPLATES)


def get_template(template_id):
    template = _BY_ID.get(template_id) if isinstance(template_id, str) else None
    if template is None:
        raise NotFoundError(resource="BriefingTemplate", resource_id=template_id)
    return template


def questions_for_category(category):
    """Questions of ``category``; the common questions for an unknown one."""
    return BRIEFING_QUESTIONS.get(category) or BRIEFING_QUESTIONS["common"]
