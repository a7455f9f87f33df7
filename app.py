import logging
import os
from datetime import datetime

from flask import (
    Blueprint,
    Flask,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from flask_login import LoginManager, current_user, login_required, login_user, logout_user
from werkzeug.utils import secure_filename

from catalog import (
    MAX_INTEGER,
    AuthError,
    Catalog,
    NotFoundError,
    ProductFilter,
    ValidationError,
    total_pages,
    whatsapp_link,
)
from config import Config
from models import User, db, init_db, seed_defaults

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}

login_manager = LoginManager()
login_manager.login_view = "shop.admin_login"

bp = Blueprint("shop", __name__)


def create_app(config_object=Config, overrides=None):
    app = Flask(__name__)
    app.config.from_object(config_object)
    if overrides:
        app.config.update(overrides)

    # Database configuration: default to a SQLite file in the instance folder
    os.makedirs(app.instance_path, exist_ok=True)
    if not app.config.get("SQLALCHEMY_DATABASE_URI"):
        db_path = os.path.join(app.instance_path, "parfaite_shop.db")
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{db_path}"

    if not app.config.get("UPLOAD_FOLDER"):
        app.config["UPLOAD_FOLDER"] = os.path.join(app.static_folder, "uploads")
    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)

    db.init_app(app)
    login_manager.init_app(app)

    # Seed failures propagate: the shop must not start half-seeded
    with app.app_context():
        init_db()
        seed_defaults(app.config["ADMIN_USERNAME"], app.config["ADMIN_PASSWORD"])

    app.extensions["catalog"] = Catalog(db.session)
    app.register_blueprint(bp)
    return app


def get_catalog() -> Catalog:
    return current_app.extensions["catalog"]


@login_manager.user_loader
def load_user(user_id):
    return User.get(user_id)


def allowed_file(filename):
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def save_upload(file):
    """Store an uploaded image and return its path relative to the static root.

    Returns None when no file was sent.
    """
    if not file or file.filename == "":
        return None
    if not allowed_file(file.filename):
        raise ValidationError("Format de fichier non supporté")
    # Add timestamp to avoid filename conflicts
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f_")
    filename = timestamp + secure_filename(file.filename)
    file.save(os.path.join(current_app.config["UPLOAD_FOLDER"], filename))
    return "uploads/" + filename


def discard_upload(image_path):
    if image_path:
        path = os.path.join(current_app.config["UPLOAD_FOLDER"], os.path.basename(image_path))
        if os.path.exists(path):
            os.remove(path)


def category_id_from_form(catalog):
    slug = request.form.get("category_slug", "").strip()
    category = catalog.get_category_by_slug(slug) if slug else None
    return category.id if category else None


@bp.app_context_processor
def inject_site_globals():
    config = current_app.config
    return {
        "site_name": config["SITE_NAME"],
        "tagline": config["BRAND_TAGLINE"],
        "signature": config["COMPANY_SIGNATURE"],
        "whatsapp_number": config["WHATSAPP_NUMBER"],
        "whatsapp_group_url": config["WHATSAPP_GROUP_URL"],
        "is_auth": current_user.is_authenticated,
        "current_path": request.path,
    }


# Public routes

@bp.route("/")
def index():
    catalog = get_catalog()
    featured = catalog.list_products(ProductFilter(limit=current_app.config["HOME_PRODUCTS"]))
    return render_template("index.html", categories=catalog.list_categories(), featured=featured)


@bp.route("/products")
def products():
    catalog = get_catalog()
    q = request.args.get("q", "").strip()
    cat = request.args.get("cat", "").strip()
    page = max(request.args.get("page", 1, type=int), 1)
    limit = current_app.config["PRODUCTS_PER_PAGE"]
    if (page - 1) * limit > MAX_INTEGER:
        page = 1

    product_filter = ProductFilter(q=q or None, category_slug=cat or None, limit=limit, offset=(page - 1) * limit)
    items = catalog.list_products(product_filter)
    total = catalog.count_products(product_filter)
    return render_template(
        "products.html",
        categories=catalog.list_categories(),
        products=items,
        q=q,
        cat=cat,
        page=page,
        total_pages=total_pages(total, limit),
    )


@bp.route("/p/<slug>")
def product_detail(slug):
    product = get_catalog().get_product_by_slug(slug)
    if product is None:
        return "Produit introuvable", 404, {"Content-Type": "text/plain; charset=utf-8"}
    share_url = url_for("shop.product_detail", slug=product.slug, _external=True)
    wa = whatsapp_link(current_app.config["WHATSAPP_NUMBER"], product.title, share_url)
    return render_template("product.html", product=product, share_url=share_url, wa=wa)


@bp.route("/about")
def about():
    return render_template("about.html")


@bp.route("/contact")
def contact():
    return render_template("contact.html")


# Admin routes

@bp.route("/admin/login", methods=["GET", "POST"])
def admin_login():
    if current_user.is_authenticated:
        return redirect(url_for("shop.admin_dashboard"))

    error = None
    if request.method == "POST":
        username = request.form.get("username", "").strip()
        password = request.form.get("password", "")
        try:
            user = get_catalog().authenticate(username, password)
        except AuthError as e:
            error = str(e)
        else:
            login_user(user)
            session.permanent = True
            logger.info("Admin %s logged in", user.username)
            return redirect(url_for("shop.admin_dashboard"))

    return render_template("admin/login.html", error=error)


@bp.route("/admin/logout")
def admin_logout():
    logout_user()
    session.clear()
    return redirect(url_for("shop.admin_login"))


@bp.route("/admin")
@login_required
def admin_dashboard():
    items = get_catalog().list_products(ProductFilter(limit=current_app.config["ADMIN_PRODUCTS"]))
    return render_template("admin/dashboard.html", products=items)


@bp.route("/admin/products/new", methods=["GET", "POST"])
@login_required
def admin_new_product():
    catalog = get_catalog()
    error = None
    if request.method == "POST":
        image_path = None
        try:
            image_path = save_upload(request.files.get("image"))
            slug = catalog.create_product(
                title=request.form.get("title"),
                description=request.form.get("description", "").strip(),
                price=request.form.get("price"),
                image_path=image_path,
                category_id=category_id_from_form(catalog),
            )
        except ValidationError as e:
            discard_upload(image_path)
            error = str(e)
        except Exception:
            discard_upload(image_path)
            raise
        else:
            return redirect(url_for("shop.product_detail", slug=slug))

    return render_template(
        "admin/product_form.html", product=None, categories=catalog.list_categories(), error=error
    )


@bp.route("/admin/products/<int:product_id>/edit", methods=["GET", "POST"])
@login_required
def admin_edit_product(product_id):
    catalog = get_catalog()
    product = catalog.get_product(product_id)
    if product is None:
        flash("Produit introuvable", "error")
        return redirect(url_for("shop.admin_dashboard"))

    error = None
    if request.method == "POST":
        image_path = None
        old_image = product.image_path
        try:
            image_path = save_upload(request.files.get("image"))
            slug = catalog.update_product(
                product_id,
                title=request.form.get("title"),
                description=request.form.get("description", "").strip(),
                price=request.form.get("price"),
                image_path=image_path,
                category_id=category_id_from_form(catalog),
            )
        except NotFoundError:
            discard_upload(image_path)
            flash("Produit introuvable", "error")
            return redirect(url_for("shop.admin_dashboard"))
        except ValidationError as e:
            discard_upload(image_path)
            error = str(e)
        except Exception:
            discard_upload(image_path)
            raise
        else:
            if image_path and old_image != image_path:
                discard_upload(old_image)
            return redirect(url_for("shop.product_detail", slug=slug))

    return render_template(
        "admin/product_form.html", product=product, categories=catalog.list_categories(), error=error
    )


@bp.route("/admin/products/<int:product_id>/delete", methods=["POST"])
@login_required
def admin_delete_product(product_id):
    get_catalog().delete_product(product_id)
    return redirect(url_for("shop.admin_dashboard"))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app()
    logger.info("Parfaite Shop running on http://localhost:%s", app.config["PORT"])
    app.run(host="0.0.0.0", port=app.config["PORT"])
