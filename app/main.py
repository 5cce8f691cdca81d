"""
Streamlit Frontend for Kasa

The interface staff use every day to record income and expenses, and
administrators use to manage users, regions and announcements.

DESIGN PRINCIPLES:
1. Every action shows its result message, success or failure
2. Pages only offer what the user's role allows
3. Backend errors are shown as the backend phrased them
4. Nothing is cached across users: each browser session gets its own
   components (the Supabase client carries the login session)
"""

import asyncio
from datetime import date
from typing import Optional

import pandas as pd
import streamlit as st
from pydantic import ValidationError

from kasa.auth import CALLBACK_FAILED_REDIRECT
from kasa.config import validate_all_settings
from kasa.export import XLSX_MIME_TYPE, ExportError
from kasa.flows import ReceiptUpload, TransactionForm
from kasa.formatting import (
    format_currency,
    format_date,
    format_datetime,
    invoice_type_text,
    payment_method_text,
)
from kasa.models.finance import (
    NO_INVOICE,
    ROLE_CAPABILITIES,
    ActionResult,
    InvoiceType,
    PaymentMethod,
    Profile,
    Region,
    Role,
    SortField,
    SortOrder,
    Transaction,
    TransactionFilter,
    TransactionType,
)
from kasa.models.stats import FinanceSummary
from kasa.orchestrator import AppComponents, create_app_components
from kasa.services.backend import AuthorizationError, BackendError
from kasa.services.images import ImageUploadError


# Page configuration
st.set_page_config(
    page_title="Kasa Yönetim Sistemi",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

COMPONENTS_KEY = "components"
PROFILE_KEY = "profile"
LIVE_LIST_KEY = "live_list"
FLASH_KEY = "flash"
LOGIN_ERROR_KEY = "login_error"
EXPORT_KEY = "export_file"
REDIRECT_KEY = "redirect_to"

# Site paths used by auth redirects
REDIRECT_PAGES = {
    "/": "dashboard",
    "/login": "login",
    "/reset-password": "reset_password",
}

LOGIN_ERROR_MESSAGES = {
    "sifre_sifirlama_basarisiz": (
        "Şifre sıfırlama bağlantısı geçersiz veya süresi dolmuş. Lütfen tekrar deneyin."
    ),
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def get_components() -> AppComponents:
    """Get or create this session's components."""
    if COMPONENTS_KEY not in st.session_state:
        st.session_state[COMPONENTS_KEY] = create_app_components()
    return st.session_state[COMPONENTS_KEY]


def current_profile() -> Optional[Profile]:
    """Profile of the signed-in user, loaded once per login."""
    if PROFILE_KEY not in st.session_state:
        st.session_state[PROFILE_KEY] = run_async(get_components().auth.current_profile())
    return st.session_state[PROFILE_KEY]


def reset_session() -> None:
    """Forget everything tied to the previous login."""
    close_live_list()
    components = st.session_state.get(COMPONENTS_KEY)
    if components is not None:
        # The realtime feed holds the previous user's access token
        components.close()
    for key in (PROFILE_KEY, EXPORT_KEY):
        st.session_state.pop(key, None)


def flash(result: ActionResult) -> None:
    """Show a result after the next rerun."""
    st.session_state[FLASH_KEY] = result


def show_flash() -> None:
    result = st.session_state.pop(FLASH_KEY, None)
    if result is not None:
        show_result(result)


def show_result(result: ActionResult) -> None:
    if result.success:
        st.success(result.message)
        if result.warning:
            st.warning(result.warning)
    else:
        st.error(result.message)


def load_regions() -> list[Region]:
    try:
        return run_async(get_components().regions.list_regions())
    except BackendError as e:
        st.error(f"Bölgeler çekilirken hata oluştu: {e}")
        return []


def render_summary(summary: FinanceSummary) -> None:
    col1, col2, col3, col4, col5 = st.columns(5)
    col1.metric("Toplam Gelir", format_currency(summary.total_income))
    col2.metric("Nakit Gider", format_currency(summary.cash_expenses))
    col3.metric("Kredi Kartı Gider", format_currency(summary.credit_card_expense_total))
    col4.metric("Toplam Gider", format_currency(summary.total_expense))
    col5.metric("Kasa Bakiyesi", format_currency(summary.cash_balance))


# =============================================================================
# AUTH PAGES
# =============================================================================

def render_login_page():
    st.title("🔐 Giriş Yap")
    show_flash()

    error_code = st.session_state.pop(LOGIN_ERROR_KEY, None) or st.query_params.get("error")
    if error_code:
        st.error(LOGIN_ERROR_MESSAGES.get(error_code, error_code))

    with st.form("login_form"):
        email = st.text_input("E-posta")
        password = st.text_input("Şifre", type="password")
        submitted = st.form_submit_button("Giriş Yap", type="primary")

    if submitted:
        result = run_async(get_components().auth.sign_in(email, password))
        if result.success:
            reset_session()
            go_to("/")
        else:
            st.error(result.message)

    st.page_link(PAGES["forgot_password"], label="Şifremi unuttum")


def render_forgot_password_page():
    st.title("🔑 Şifremi Unuttum")
    st.markdown("E-posta adresinizi girin, size bir şifre sıfırlama linki gönderelim.")

    with st.form("forgot_password_form"):
        email = st.text_input("E-posta")
        submitted = st.form_submit_button("Sıfırlama Linki Gönder", type="primary")

    if submitted:
        show_result(run_async(get_components().auth.request_password_reset(email)))


def render_reset_password_page():
    st.title("🔑 Yeni Şifre Belirle")

    # The recovery email lands here with a one-time code
    code = st.query_params.get("code")
    if code:
        target = run_async(get_components().auth.complete_auth_callback(code, "/reset-password"))
        st.query_params.clear()
        reset_session()
        if target == CALLBACK_FAILED_REDIRECT:
            go_to(target)

    if current_profile() is None:
        st.error(
            "Geçersiz şifre sıfırlama bağlantısı. "
            "Lütfen giriş sayfasından tekrar deneyin."
        )
        return

    with st.form("reset_password_form"):
        password = st.text_input("Yeni Şifre", type="password")
        confirmation = st.text_input("Yeni Şifre (Tekrar)", type="password")
        submitted = st.form_submit_button("Şifreyi Güncelle", type="primary")

    if submitted:
        result = run_async(get_components().auth.update_password(password, confirmation))
        if result.success:
            profile = current_profile()
            run_async(get_components().auth.sign_out(profile.id))
            reset_session()
            flash(result)
            go_to("/login")
        else:
            st.error(result.message)


def render_auth_callback_page():
    """Exchange the email-link code and continue to ``next``."""
    params = st.query_params
    target = run_async(
        get_components().auth.complete_auth_callback(params.get("code"), params.get("next"))
    )
    reset_session()
    go_to(target)


def go_to(target: str) -> None:
    """Redirect to a site path once the session's pages are rebuilt."""
    st.session_state[REDIRECT_KEY] = target
    st.rerun()


def follow_redirect(available: list) -> None:
    """Switch to the pending redirect target, if it is one of ``available``."""
    target = st.session_state.pop(REDIRECT_KEY, None)
    if not target:
        return
    path, _, query = target.partition("?")
    if query.startswith("error="):
        st.session_state[LOGIN_ERROR_KEY] = query.split("=", 1)[1]
    page = PAGES.get(REDIRECT_PAGES.get(path, "dashboard"))
    if page in available:
        st.query_params.clear()
        st.switch_page(page)


# =============================================================================
# DASHBOARD
# =============================================================================

def render_dashboard_page():
    profile = current_profile()
    st.title(f"👋 Hoş geldin, {profile.full_name or 'Kullanıcı'}")
    if profile.region_name:
        st.caption(f"Bölge: {profile.region_name} · Rol: {profile.role.label}")

    try:
        view = run_async(get_components().dashboard.load(profile))
    except BackendError as e:
        st.error(f"İşlemler çekilirken hata oluştu: {e}")
        return

    render_summary(view.summary)

    st.markdown("---")
    st.subheader("🕒 Son İşlemler")
    if not view.recent:
        st.info("Henüz kayıtlı işlem yok.")
    for tx in view.recent:
        sign = "+" if tx.is_income else "-"
        st.markdown(
            f"**{tx.title}** · {format_date(tx.transaction_date)} · "
            f"{tx.region_name or 'Bölge yok'} · {sign}{format_currency(tx.amount)}"
        )

    if view.regional is not None:
        st.markdown("---")
        st.subheader("🗺️ Bölge Bazında Durum")
        rows = [
            {
                "Bölge": stats.name,
                "Gelir": format_currency(stats.total_income),
                "Nakit Gider": format_currency(stats.cash_expenses),
                "Kredi Kartı Gider": format_currency(stats.credit_card_expense_total),
                "Toplam Gider": format_currency(stats.total_expense),
                "Kasa Bakiyesi": format_currency(stats.cash_balance),
            }
            for stats in view.regional.sorted_by_name()
        ]
        st.dataframe(pd.DataFrame(rows), hide_index=True, use_container_width=True)
        if not view.regional.unattributed.is_empty:
            st.caption(
                "Bölgesi olmayan işlemler: "
                f"gelir {format_currency(view.regional.unattributed.total_income)}, "
                f"gider {format_currency(view.regional.unattributed.total_expense)}"
            )


# =============================================================================
# TRANSACTIONS
# =============================================================================

def transaction_inputs(
    key: str,
    profile: Profile,
    regions: list[Region],
    existing: Optional[Transaction] = None,
    allow_expense_region: bool = False,
) -> TransactionForm:
    """Form widgets shared by the add and edit forms."""
    types = list(TransactionType)
    tx_type = st.radio(
        "İşlem Tipi",
        options=types,
        index=types.index(existing.type) if existing else None,
        format_func=lambda t: f"{t.label} ({t.value})",
        horizontal=True,
        key=f"{key}_type",
    )
    title = st.text_input(
        "Başlık",
        value=existing.title if existing else "",
        placeholder="örn: Ofis Kira Ödemesi",
        key=f"{key}_title",
    )
    amount = st.text_input(
        "Tutar (₺)",
        value=str(existing.amount) if existing else "",
        placeholder="örn: 12000.50",
        help="Kuruşlar nokta veya virgül ile ayrılır; binlik ayırıcı kullanmayın.",
        key=f"{key}_amount",
    )
    tx_date = st.date_input(
        "İşlem Tarihi",
        value=existing.transaction_date if existing else date.today(),
        format="DD.MM.YYYY",
        key=f"{key}_date",
    )

    payment_method = None
    invoice_type = None
    expense_region_id = None
    if tx_type == TransactionType.EXPENSE:
        methods = list(PaymentMethod)
        payment_method = st.selectbox(
            "Ödeme Şekli",
            options=methods,
            index=methods.index(existing.payment_method)
            if existing and existing.payment_method else 0,
            format_func=lambda m: m.label,
            key=f"{key}_payment",
        )
        invoice_options = [NO_INVOICE] + [i.value for i in InvoiceType]
        current_invoice = existing.invoice_type.value if existing and existing.invoice_type else NO_INVOICE
        invoice_type = st.selectbox(
            "Fatura Tipi",
            options=invoice_options,
            index=invoice_options.index(current_invoice),
            format_func=lambda v: "Yok" if v == NO_INVOICE else InvoiceType(v).label,
            key=f"{key}_invoice",
        )
        if allow_expense_region and profile.capabilities.can_choose_expense_region and regions:
            region_ids = [r.id for r in regions]
            names = {r.id: r.name for r in regions}
            expense_region_id = st.selectbox(
                "Gider Bölgesi",
                options=region_ids,
                index=region_ids.index(profile.region_id) if profile.region_id in region_ids else 0,
                format_func=lambda rid: names[rid],
                key=f"{key}_expense_region",
            )

    description = st.text_area(
        "Açıklama",
        value=(existing.description or "") if existing else "",
        key=f"{key}_description",
    )

    return TransactionForm(
        title=title,
        amount=amount,
        type=tx_type,
        transaction_date=tx_date,
        description=description,
        payment_method=payment_method,
        invoice_type=invoice_type,
        expense_region_id=expense_region_id,
    )


def render_add_transaction_page():
    profile = current_profile()
    components = get_components()
    st.title("➕ Yeni İşlem Ekle")
    st.markdown("Yeni bir gelir veya gider kaydı oluşturun.")
    show_flash()

    regions = load_regions()
    form = transaction_inputs("add", profile, regions, allow_expense_region=True)

    uploaded_file = st.file_uploader(
        "Fiş / Fatura Görseli (isteğe bağlı)",
        type=components.settings.supported_formats_list,
        help=f"En fazla {components.settings.max_upload_size_mb} MB. "
        "Görsel yüklenmeden önce otomatik olarak küçültülür.",
    )
    if uploaded_file is not None:
        st.image(uploaded_file, width=240)

    if st.button("💾 Kaydet", type="primary"):
        receipt = None
        if uploaded_file is not None:
            receipt = ReceiptUpload(
                data=uploaded_file.getvalue(),
                filename=uploaded_file.name,
                content_type=uploaded_file.type,
            )
        with st.spinner("Kaydediliyor..."):
            result = run_async(
                components.transactions.add_transaction(profile, form, receipt, regions=regions)
            )
        if result.success:
            flash(result)
            st.switch_page(PAGES["transactions"])
        else:
            st.error(result.message)


def build_filter(profile: Profile, regions: list[Region], user_names: dict[str, str]) -> Optional[TransactionFilter]:
    """Filter widgets; returns None when the combination is invalid."""
    with st.expander("🔎 Filtreler", expanded=False):
        col1, col2, col3 = st.columns(3)
        with col1:
            start = st.date_input("Başlangıç", value=None, format="DD.MM.YYYY", key="f_start")
            tx_type = st.selectbox(
                "Tip",
                options=[None] + list(TransactionType),
                format_func=lambda t: "Tümü" if t is None else t.label,
                key="f_type",
            )
        with col2:
            end = st.date_input("Bitiş", value=None, format="DD.MM.YYYY", key="f_end")
            payment = st.selectbox(
                "Ödeme Şekli",
                options=[None] + list(PaymentMethod),
                format_func=lambda m: "Tümü" if m is None else m.label,
                key="f_payment",
            )
        with col3:
            invoice = st.selectbox(
                "Fatura Tipi",
                options=[None, NO_INVOICE] + [i.value for i in InvoiceType],
                format_func=lambda v: "Tümü" if v is None else ("Yok" if v == NO_INVOICE else InvoiceType(v).label),
                key="f_invoice",
            )
            sort_by = st.selectbox(
                "Sıralama",
                options=list(SortField),
                format_func=lambda f: "İşlem Tarihi" if f == SortField.TRANSACTION_DATE else "Kayıt Tarihi",
                key="f_sort_by",
            )
            sort_order = st.selectbox(
                "Yön",
                options=list(SortOrder),
                format_func=lambda o: "Yeniden eskiye" if o == SortOrder.DESC else "Eskiden yeniye",
                key="f_sort_order",
            )

        region_id = user_id = expense_region = None
        if profile.capabilities.uses_admin_filters:
            col4, col5, col6 = st.columns(3)
            names = {r.id: r.name for r in regions}
            with col4:
                region_id = st.selectbox(
                    "Bölge",
                    options=[None] + list(names),
                    format_func=lambda rid: "Tümü" if rid is None else names[rid],
                    key="f_region",
                )
            with col5:
                user_id = st.selectbox(
                    "Kullanıcı",
                    options=[None] + list(user_names),
                    format_func=lambda uid: "Tümü" if uid is None else user_names[uid],
                    key="f_user",
                )
            with col6:
                expense_region = st.selectbox(
                    "Gider Bölgesi",
                    options=[None] + sorted(names.values()),
                    format_func=lambda n: "Tümü" if n is None else n,
                    key="f_expense_region",
                )

    search = st.text_input("Ara", placeholder="Başlık, tutar, açıklama, bölge, kullanıcı...", key="f_search")

    try:
        return TransactionFilter(
            start_date=start,
            end_date=end,
            type=tx_type,
            payment_method=payment,
            invoice_type=invoice,
            region_id=region_id,
            user_id=user_id,
            expense_region_info=expense_region,
            search_term=search,
            sort_by=sort_by,
            sort_order=sort_order,
            limit=get_components().settings.transaction_fetch_limit,
        )
    except ValidationError:
        st.error("Bitiş tarihi başlangıç tarihinden önce olamaz.")
        return None


def close_live_list() -> None:
    live = st.session_state.pop(LIVE_LIST_KEY, None)
    if live is not None:
        live.close()


def render_live_watcher(seconds: int) -> None:
    """Rerun the page when the open list has been changed elsewhere."""

    @st.fragment(run_every=seconds)
    def watcher():
        live = st.session_state.get(LIVE_LIST_KEY)
        if live is not None and live.stale:
            st.rerun()

    watcher()


def render_transaction_row(tx: Transaction, profile: Profile, user_names: dict[str, str], regions: list[Region]):
    components = get_components()
    sign = "+" if tx.is_income else "-"
    header = (
        f"{format_date(tx.transaction_date)} · {tx.title} · "
        f"{sign}{format_currency(tx.amount)}"
    )
    with st.expander(header):
        st.markdown(f"**Tip:** {tx.type.label}")
        st.markdown(f"**Ödeme Şekli:** {payment_method_text(tx.payment_method)}")
        if not tx.is_income:
            st.markdown(f"**Fatura Tipi:** {invoice_type_text(tx.invoice_type)}")
        st.markdown(f"**Bölge:** {tx.region_name or 'Bilinmiyor'}")
        if tx.expense_region_info:
            st.markdown(f"**Gider Bölge Detayı:** {tx.expense_region_info}")
        if tx.description:
            st.markdown(f"**Açıklama:** {tx.description}")
        if user_names:
            st.markdown(f"**İşlemi Yapan:** {user_names.get(tx.user_id or '', 'Bilinmiyor')}")
        st.caption(f"Kayıt: {format_datetime(tx.created_at)}")

        if tx.image_path and st.button("🖼️ Görseli Göster", key=f"img_{tx.id}"):
            try:
                st.image(components.transactions.receipt_url(tx))
            except ImageUploadError as e:
                st.error(f"Görsel URL'i alınamadı: {e}")

        if not profile.capabilities.can_modify_transactions:
            return

        st.markdown("---")
        form = transaction_inputs(f"edit_{tx.id}", profile, regions, existing=tx)
        col1, col2 = st.columns(2)
        if col1.button("💾 Güncelle", key=f"update_{tx.id}", type="primary"):
            result = run_async(components.transactions.update_transaction(profile, tx.id, form))
            flash(result)
            st.rerun()
        if st.session_state.get("confirm_delete") == tx.id:
            st.warning("Bu işlemi silmek istediğinizden emin misiniz?")
            if st.button("Evet, sil", key=f"confirm_{tx.id}"):
                st.session_state.pop("confirm_delete", None)
                flash(run_async(components.transactions.delete_transaction(profile, tx.id)))
                st.rerun()
        elif col2.button("🗑️ Sil", key=f"delete_{tx.id}"):
            st.session_state["confirm_delete"] = tx.id
            st.rerun()


def render_transactions_page():
    profile = current_profile()
    components = get_components()
    st.title("📒 Tüm İşlemler")
    show_flash()

    regions = load_regions()
    try:
        user_names = run_async(components.transactions.user_directory(profile))
    except BackendError as e:
        st.error(f"Kullanıcı verileri çekilirken bir hata oluştu: {e}")
        user_names = {}

    filters = build_filter(profile, regions, user_names)
    if filters is None:
        return

    live = st.session_state.get(LIVE_LIST_KEY)
    if live is None:
        live = components.live_transactions(profile, filters).open()
        st.session_state[LIVE_LIST_KEY] = live
    live.set_filters(filters)

    snapshot = run_async(live.current())
    if snapshot.error:
        st.error(snapshot.error)
    if snapshot.listing is None:
        return

    listing = snapshot.listing
    render_summary(listing.summary)
    st.caption(
        f"{len(listing.transactions)} işlem"
        + (" · canlı" if live.is_live else "")
    )

    if st.button("📥 Excel'e Aktar"):
        try:
            filename, data = run_async(
                components.transactions.export(profile, listing.transactions, user_names)
            )
            st.session_state[EXPORT_KEY] = (filename, data)
            st.success("İşlemler Excel'e başarıyla aktarıldı.")
        except ExportError as e:
            st.error(f"Excel'e aktarılırken bir hata oluştu: {e}")
    if EXPORT_KEY in st.session_state:
        filename, data = st.session_state[EXPORT_KEY]
        st.download_button("⬇️ Dosyayı İndir", data=data, file_name=filename, mime=XLSX_MIME_TYPE)

    st.markdown("---")
    if listing.is_empty:
        st.info("Filtrelere uygun işlem bulunamadı.")
    for tx in listing.transactions:
        render_transaction_row(tx, profile, user_names, regions)

    if live.is_live:
        render_live_watcher(components.settings.live_refresh_seconds)


# =============================================================================
# ADMINISTRATION
# =============================================================================

def role_select(label: str, key: str, current: Role = Role.BASE_USER) -> Role:
    roles = list(ROLE_CAPABILITIES)
    return st.selectbox(
        label,
        options=roles,
        index=roles.index(current),
        format_func=lambda r: r.label,
        key=key,
    )


def region_select(label: str, key: str, regions: list[Region], current: Optional[str] = None) -> Optional[str]:
    names = {r.id: r.name for r in regions}
    options = [None] + list(names)
    return st.selectbox(
        label,
        options=options,
        index=options.index(current) if current in options else 0,
        format_func=lambda rid: "Bölge yok" if rid is None else names[rid],
        key=key,
    )


def render_users_page():
    profile = current_profile()
    components = get_components()
    st.title("👥 Kullanıcı Yönetimi")
    show_flash()

    regions = load_regions()

    with st.form("create_user_form", clear_on_submit=True):
        st.subheader("Yeni Kullanıcı")
        full_name = st.text_input("Ad Soyad")
        email = st.text_input("E-posta")
        password = st.text_input("Şifre", type="password")
        role = role_select("Rol", "new_user_role")
        region_id = region_select("Bölge", "new_user_region", regions)
        if st.form_submit_button("Kullanıcı Oluştur", type="primary"):
            flash(run_async(components.users.create_user(
                profile, full_name, email, password, role, region_id
            )))
            st.rerun()

    try:
        users = run_async(components.users.list_users(profile))
    except (AuthorizationError, BackendError) as e:
        st.error(f"Kullanıcı verileri çekilirken bir hata oluştu: {e}")
        return

    st.markdown("---")
    for user in users:
        with st.expander(f"{user.full_name or user.id} · {user.role.label} · {user.region_name or 'Bölge yok'}"):
            with st.form(f"user_{user.id}"):
                name = st.text_input("Ad Soyad", value=user.full_name)
                new_role = role_select("Rol", f"role_{user.id}", user.role)
                new_region = region_select("Bölge", f"region_{user.id}", regions, user.region_id)
                if st.form_submit_button("Güncelle"):
                    flash(run_async(components.users.update_user(
                        profile, user.id, name, new_role, new_region
                    )))
                    st.rerun()
            if user.id != profile.id and st.button("🗑️ Kullanıcıyı Sil", key=f"del_user_{user.id}"):
                flash(run_async(components.users.delete_user(profile, user.id)))
                st.rerun()


def render_regions_page():
    profile = current_profile()
    components = get_components()
    st.title("🗺️ Bölge Yönetimi")
    show_flash()

    with st.form("create_region_form", clear_on_submit=True):
        name = st.text_input("Bölge Adı")
        if st.form_submit_button("Bölge Oluştur", type="primary"):
            flash(run_async(components.regions.create_region(profile, name)))
            st.rerun()

    st.markdown("---")
    for region in load_regions():
        col1, col2 = st.columns([4, 1])
        col1.markdown(f"**{region.name}**")
        if col2.button("Sil", key=f"del_region_{region.id}"):
            flash(run_async(components.regions.delete_region(profile, region.id)))
            st.rerun()


def render_notifications_admin_page():
    profile = current_profile()
    flow = get_components().notifications
    st.title("📣 Bildirim Gönder")
    show_flash()

    with st.form("send_notification_form", clear_on_submit=True):
        message = st.text_area(
            "Mesaj",
            placeholder="Tüm kullanıcılara gönderilecek mesajınızı buraya yazın...",
        )
        if st.form_submit_button("Gönder", type="primary"):
            flash(run_async(flow.send(profile, message)))
            st.rerun()

    try:
        overview = run_async(flow.overview(profile))
    except (AuthorizationError, BackendError) as e:
        st.error(f"Bildirimler listelenirken bir hata oluştu: {e}")
        return

    st.subheader("Aktif Bildirimler")
    if not overview.active:
        st.info("Aktif bildirim yok.")
    for notification in overview.active:
        with st.container(border=True):
            st.markdown(notification.message)
            st.caption(f"{notification.creator_name} · {format_datetime(notification.created_at)}")
            col1, col2 = st.columns(2)
            if col1.button("Devre Dışı Bırak", key=f"deact_{notification.id}"):
                flash(run_async(flow.deactivate(profile, notification.id)))
                st.rerun()
            if col2.toggle("Detaylar", key=f"details_{notification.id}"):
                try:
                    audience = run_async(flow.audience(profile, notification.id))
                except BackendError as e:
                    st.error(f"Detaylar çekilirken bir hata oluştu: {e}")
                    continue
                st.markdown(f"**Kapatanlar ({len(audience.dismissed)})**")
                for member in audience.dismissed:
                    st.markdown(f"- {member.full_name} · {format_datetime(member.dismissed_at)}")
                st.markdown(f"**Henüz kapatmayanlar ({len(audience.not_dismissed)})**")
                for member in audience.not_dismissed:
                    st.markdown(f"- {member.full_name}")

    st.subheader("Geçmiş Bildirimler")
    for notification in overview.past:
        st.markdown(
            f"- {notification.message} "
            f"({notification.creator_name} · {format_datetime(notification.created_at)})"
        )


def render_settings_page():
    """Render the connection status page."""
    st.title("⚙️ Sistem Durumu")

    status = validate_all_settings()
    services = [
        ("Supabase", "supabase"),
        ("Supabase Yönetici Erişimi (kullanıcı yönetimi)", "supabase_admin"),
        ("Uygulama Ayarları", "app"),
    ]
    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Yapılandırıldı")
        else:
            error = status.get(f"{key}_error", "Yapılandırılmadı")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(
        "Uygulamayı yapılandırmak için bir `.env` dosyası oluşturun. "
        "Gerekli değişkenler için `.env.example` dosyasına bakın."
    )


# =============================================================================
# SIDEBAR
# =============================================================================

def render_sidebar(profile: Profile):
    components = get_components()
    st.sidebar.markdown(f"**{profile.full_name or 'Kullanıcı'}**")
    st.sidebar.caption(f"{profile.role.label} · {profile.region_name or 'Bölge yok'}")

    try:
        notifications = run_async(components.notifications.visible_for(profile.id))
    except BackendError:
        notifications = []
    for notification in notifications:
        st.sidebar.info(f"📢 {notification.message}")
        if st.sidebar.button("Kapat", key=f"dismiss_{notification.id}"):
            result = run_async(components.notifications.dismiss(profile.id, notification.id))
            if not result.success:
                flash(result)
            st.rerun()

    st.sidebar.markdown("---")
    if st.sidebar.button("🚪 Çıkış Yap"):
        run_async(components.auth.sign_out(profile.id))
        reset_session()
        go_to("/login")


# =============================================================================
# NAVIGATION
# =============================================================================

PAGES = {
    "login": st.Page(render_login_page, title="Giriş", icon="🔐", url_path="login"),
    "forgot_password": st.Page(
        render_forgot_password_page, title="Şifremi Unuttum", icon="🔑", url_path="forgot-password"
    ),
    "reset_password": st.Page(
        render_reset_password_page, title="Şifre Sıfırla", icon="🔑", url_path="reset-password"
    ),
    "auth_callback": st.Page(
        render_auth_callback_page, title="Doğrulama", icon="🔄", url_path="auth-callback"
    ),
    "dashboard": st.Page(render_dashboard_page, title="Ana Sayfa", icon="🏠", url_path="dashboard"),
    "add_transaction": st.Page(
        render_add_transaction_page, title="Yeni İşlem", icon="➕", url_path="add-transaction"
    ),
    "transactions": st.Page(
        render_transactions_page, title="Tüm İşlemler", icon="📒", url_path="transactions"
    ),
    "users": st.Page(render_users_page, title="Kullanıcı Yönetimi", icon="👥", url_path="admin-users"),
    "regions": st.Page(render_regions_page, title="Bölge Yönetimi", icon="🗺️", url_path="admin-regions"),
    "notifications": st.Page(
        render_notifications_admin_page, title="Bildirim Gönder", icon="📣", url_path="admin-notifications"
    ),
    "settings": st.Page(render_settings_page, title="Sistem Durumu", icon="⚙️", url_path="settings"),
}


def main():
    """Main application entry point."""
    try:
        profile = current_profile()
    except BackendError as e:
        st.error(f"Sunucuya bağlanılamadı: {e}")
        st.stop()

    if profile is None:
        pages = [
            PAGES["login"],
            PAGES["forgot_password"],
            PAGES["reset_password"],
            PAGES["auth_callback"],
        ]
        page = st.navigation(pages, position="hidden")
        follow_redirect(pages)
        page.run()
        return

    sections = {
        "Kasa": [
            PAGES["dashboard"],
            PAGES["add_transaction"],
            PAGES["transactions"],
        ],
    }
    if profile.is_admin:
        sections["Yönetim"] = [
            PAGES["users"],
            PAGES["regions"],
            PAGES["notifications"],
            PAGES["settings"],
        ]
    sections["Hesap"] = [PAGES["reset_password"], PAGES["auth_callback"]]

    page = st.navigation(sections)
    follow_redirect([p for group in sections.values() for p in group])
    if page.url_path != PAGES["transactions"].url_path:
        close_live_list()
    render_sidebar(profile)
    page.run()


if __name__ == "__main__":
    main()
