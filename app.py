# app.py
# streamlit run app.py
import streamlit as st

from backend.config import load_settings, configure_logging
from backend.errors import AuthError, ConfigError
from backend.formatting import format_scheduled_for
from backend.painel import Painel, PainelSession
from backend.runtime import LoopThread
from backend.selection import CONFIRM_ONE, confirm_selected_message
from models.appointment import STATUS_CANCELLED


# ============================
# INICIALIZAÇÃO
# ============================
st.set_page_config(page_title="Agendamentos", page_icon="🗓️", layout="wide")

try:
    settings = load_settings()
except ConfigError as e:
    st.error(f"⚠️ {e}")
    st.stop()

configure_logging(settings.log_level)

# Um loop + um painel por sessão do navegador; fechados quando a sessão some
if "sessao" not in st.session_state:
    st.session_state.sessao = PainelSession.open(settings)

if "pending_confirm" not in st.session_state:
    st.session_state.pending_confirm = None   # {"kind": "one"|"selected", "id": ...}
if "flash" not in st.session_state:
    st.session_state.flash = None             # (ok, mensagem)

runtime: LoopThread = st.session_state.sessao.runtime
painel: Painel = st.session_state.sessao.painel


def _approve(_message: str) -> bool:
    return True


def _show_flash():
    flash = st.session_state.flash
    st.session_state.flash = None
    if flash:
        ok, message = flash
        (st.success if ok else st.error)(message)


# ============================
# LOGIN
# ============================
def render_login():
    _, center, _ = st.columns((1, 2, 1))
    with center:
        st.header("🔑 Login")
        with st.form("login_form"):
            email = st.text_input("Email:")
            password = st.text_input("Senha:", type="password")
            submitted = st.form_submit_button("Entrar", use_container_width=True)

        if submitted:
            if not email or not password:
                st.error("Informe email e senha.")
                return
            with st.spinner("Carregando..."):
                try:
                    runtime.run(painel.sign_in(email, password))
                except AuthError as e:
                    st.error(str(e))
                    return
            st.rerun()


# ============================
# AÇÕES
# ============================
def _on_toggle(appointment_id):
    runtime.call(painel.selection.toggle_selection, appointment_id)


def _on_select_all():
    runtime.call(painel.selection.select_all_visible, st.session_state["sel-all"])


def _on_search():
    runtime.call(painel.selection.set_search_term, st.session_state.get("search", ""))


def _ask_cancel_one(appointment_id):
    st.session_state.pending_confirm = {"kind": "one", "id": appointment_id}


def _ask_cancel_selected():
    st.session_state.pending_confirm = {"kind": "selected"}


def _confirm_pending():
    pending = st.session_state.pending_confirm
    st.session_state.pending_confirm = None
    if not pending:
        return
    if pending["kind"] == "one":
        outcome = runtime.run(painel.selection.cancel_one(pending["id"], _approve))
    else:
        outcome = runtime.run(painel.selection.cancel_selected(_approve))
    if outcome.message:
        st.session_state.flash = (outcome.ok, outcome.message)


def _discard_pending():
    st.session_state.pending_confirm = None


def _logout():
    if not runtime.run(painel.sign_out()):
        st.session_state.flash = (False, "Erro ao fazer logout.")
    for key in ["search", "sel-all", "pending_confirm"]:
        st.session_state.pop(key, None)


# ============================
# LISTA
# ============================
def render_confirmation(state):
    pending = st.session_state.pending_confirm
    if not pending:
        return
    if pending["kind"] == "one":
        message = CONFIRM_ONE
    else:
        message = confirm_selected_message(len(state.selected))
    with st.container(border=True):
        st.warning(message)
        yes, no, _ = st.columns((1, 1, 6))
        yes.button("Sim", key="confirm-yes", on_click=_confirm_pending)
        no.button("Não", key="confirm-no", on_click=_discard_pending)


@st.fragment(run_every=settings.ui_poll_seconds)
def render_appointments():
    state = painel.store.snapshot()

    # Sessão encerrada por fora (outra aba, token expirado)
    if painel.identity is None:
        st.rerun()

    head, actions = st.columns((3, 4))
    with head:
        st.header("🗓️ Lista de Agendamentos")
    with actions:
        search_col, bulk_col, out_col = st.columns((3, 2, 1))
        search_col.text_input(
            "Filtrar por telefone",
            key="search",
            placeholder="Filtrar por telefone...",
            on_change=_on_search,
            label_visibility="collapsed",
        )
        if state.selected:
            bulk_col.button(
                f"Cancelar Selecionados ({len(state.selected)})",
                key="cancel-selected",
                on_click=_ask_cancel_selected,
            )
        out_col.button("Sair", key="logout", type="primary", on_click=_logout)

    _show_flash()
    if state.notice:
        st.info(state.notice)

    if state.loading and not state.appointments:
        st.info("Carregando agendamentos...")
        return
    if state.error:
        st.error(f"Erro ao carregar agendamentos: {state.error}")
        return

    render_confirmation(state)

    rows = painel.selection.visible()
    if not rows:
        st.info("Nenhum agendamento encontrado.")
        return

    widths = (0.5, 2, 5, 2.5, 1.5, 1.5)
    header = st.columns(widths)
    st.session_state["sel-all"] = painel.selection.all_visible_selected()
    header[0].checkbox("Todos", key="sel-all", on_change=_on_select_all, label_visibility="collapsed")
    for col, title in zip(header[1:], ["Telefone", "Mensagem", "Agendado Para", "Status", "Ações"]):
        col.markdown(f"**{title}**")

    for app in rows:
        cols = st.columns(widths)
        cancelled = app.status == STATUS_CANCELLED
        if not cancelled:
            key = f"sel-{app.id}"
            st.session_state[key] = app.id in state.selected
            cols[0].checkbox(
                "Selecionar",
                key=key,
                on_change=_on_toggle,
                args=(app.id,),
                label_visibility="collapsed",
            )
        cols[1].write(app.phone_number)
        cols[2].write(app.message_text)
        cols[3].write(format_scheduled_for(app.scheduled_for, settings.timezone))
        cols[4].write(app.status or "")
        if not cancelled:
            cols[5].button("Cancelar", key=f"cancel-{app.id}", on_click=_ask_cancel_one, args=(app.id,))


# ============================
# INTERFACE PRINCIPAL
# ============================
if painel.identity is None:
    _show_flash()
    render_login()
else:
    if painel.identity.email:
        st.caption(f"👤 Usuário: {painel.identity.email}")
    render_appointments()
